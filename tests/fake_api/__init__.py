"""In-memory Brightbox API for lifecycle tests.

FakeBrightboxAPI implements the BrightboxAPI protocol against dictionaries.
Map and unmap requests settle asynchronously: the Cloud IP keeps reporting
its old status for a configurable number of reads before the change shows.

Usage:
    from fake_api import FakeBrightboxAPI, server_error

    api = FakeBrightboxAPI(settle_after=2)
    api.fail("unmap_cloud_ip", server_error("boom"))
    diags = await resource.update(api, data)

    assert [name for name, _ in api.calls] == [...]
"""

from .client import FakeBrightboxAPI
from .errors import not_found, server_error

__all__ = [
    "FakeBrightboxAPI",
    "not_found",
    "server_error",
]
