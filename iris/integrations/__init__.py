"""iris.integrations — outbound HTTP clients.

Current clients:
  iris_client.IrisApiClient — IRIS REST API (certification matrix, IRB applications)
"""
