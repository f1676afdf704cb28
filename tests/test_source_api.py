import httpx
import pytest

from msu_backend.core.source_api import SourceApi, SourceDownloadError

URL = "https://example.test/enf.xls"


def make_api(handler):
    api = SourceApi()
    api.client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return api


class TestCheckFileHeader:
    """Test cases for Last-Modified change detection"""

    @pytest.mark.asyncio
    async def test_first_check_requires_update(self):
        api = make_api(lambda request: httpx.Response(200, headers={"Last-Modified": "Mon, 03 Feb 2025"}))

        result = await api.check_file_header(URL, None)

        assert result.is_changed
        assert result.last_modified == "Mon, 03 Feb 2025"

    @pytest.mark.asyncio
    async def test_same_marker_is_unchanged(self):
        api = make_api(lambda request: httpx.Response(200, headers={"Last-Modified": "v1"}))

        result = await api.check_file_header(URL, "v1")

        assert not result.is_changed

    @pytest.mark.asyncio
    async def test_new_marker_is_changed(self):
        api = make_api(lambda request: httpx.Response(200, headers={"Last-Modified": "v2"}))

        result = await api.check_file_header(URL, "v1")

        assert result.is_changed
        assert result.last_modified == "v2"

    @pytest.mark.asyncio
    async def test_missing_header_is_unchanged(self):
        api = make_api(lambda request: httpx.Response(200))

        assert not (await api.check_file_header(URL, None)).is_changed

    @pytest.mark.asyncio
    async def test_errors_count_as_unchanged(self):
        def broken(request):
            raise httpx.ConnectError("refused", request=request)

        assert not (await make_api(broken).check_file_header(URL, "v1")).is_changed
        not_found = make_api(lambda request: httpx.Response(404))
        result = await not_found.check_file_header(URL, "v1")
        assert not result.is_changed
        assert result.last_modified == "v1"


class TestDownloadFile:
    @pytest.mark.asyncio
    async def test_body_is_returned(self):
        api = make_api(lambda request: httpx.Response(200, content=b"PK\x03\x04"))

        assert await api.download_file(URL) == b"PK\x03\x04"

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        api = make_api(lambda request: httpx.Response(500))

        with pytest.raises(SourceDownloadError):
            await api.download_file(URL)

    @pytest.mark.asyncio
    async def test_empty_body_raises(self):
        api = make_api(lambda request: httpx.Response(200, content=b""))

        with pytest.raises(SourceDownloadError):
            await api.download_file(URL)
