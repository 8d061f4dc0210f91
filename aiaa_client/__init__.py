"""
Client for point based (DEXTR3D) annotation with an AIAA inference server.

The command line entry point is `aiaa_client.dextr3d`, the request configuration logic
lives in `aiaa_client.request_config` and the HTTP client in `aiaa_client.client`.
"""

from .__version__ import __version__
