"""
Domain layer for the image label pipeline.

This layer contains:
- Data models (webhook events, topic messages, broker envelopes)
- The three stages (receive, process, send)
- Batch handling and the error taxonomy
"""
