"""Video/Image provider implementations.

Each provider module implements one of two patterns:
  synchronous:  POST request → artifact in the response body
  async task:   POST create task → poll status → artifact URL
"""
