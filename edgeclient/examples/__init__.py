"""
Interactive example programs for the Edge Core client.

Run with ``python -m edgeclient.examples.<name>`` or the installed
``edge-*-example`` commands.
"""
