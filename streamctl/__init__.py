"""
Streaming control plane.

Turns owner intent (power the endpoint on, start a playlist transmission,
push to a social platform, record the output) into coordinated changes
across the session store, the remote media server and local capture
processes.
"""
