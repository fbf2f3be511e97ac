"""
iBroadcast sync tool: uploads a local music library, skipping files the
server already has.
"""
