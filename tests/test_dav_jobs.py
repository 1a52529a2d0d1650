#!/usr/bin/env python
# -*- encoding: utf-8 -*-
"""
Unit tests for the WebDAV verb jobs.

Rule: None of the tests in this file should initiate any internet
communication. The transport is an AsyncMock.
"""
from datetime import datetime
from datetime import timezone

import pytest

from davjobs.jobs import EntityExistsJob
from davjobs.jobs import LsColJob
from davjobs.jobs import MkColJob
from davjobs.jobs import PropfindJob
from davjobs.jobs import ProppatchJob
from davjobs.jobs import RequestEtagJob
from davjobs.jobs.dav import is_xml_utf8
from davjobs.lib import error
from davjobs.protocol import build_etag_body
from davjobs.protocol import DAVMethod
from davjobs.protocol import EtagResult
from davjobs.protocol import Priority

from .conf import BASE_URL
from .conf import DAV_URL
from .conf import make_context
from .conf import make_response
from .conf import sent_requests
from .test_xml_parsers import LISTING_XML

XML_HEADERS = {"Content-Type": "application/xml; charset=utf-8"}

ETAG_XML = b"""<?xml version="1.0"?>
<d:multistatus xmlns:d="DAV:">
  <d:response>
    <d:href>/remote.php/webdav/Documents/</d:href>
    <d:propstat>
      <d:prop><d:getetag>W/"abc-gzip"</d:getetag></d:prop>
      <d:status>HTTP/1.1 200 OK</d:status>
    </d:propstat>
  </d:response>
</d:multistatus>
"""

PROPFIND_XML = b"""<?xml version="1.0"?>
<d:multistatus xmlns:d="DAV:" xmlns:oc="http://owncloud.org/ns">
  <d:response>
    <d:href>/remote.php/webdav/Documents/report.odt</d:href>
    <d:propstat>
      <d:prop>
        <oc:fileid>00000042ocabc</oc:fileid>
        <oc:privatelink>https://cloud.example.com/f/42</oc:privatelink>
      </d:prop>
      <d:status>HTTP/1.1 200 OK</d:status>
    </d:propstat>
  </d:response>
</d:multistatus>
"""


class TestRequestEtagJob:
    @pytest.mark.asyncio
    async def test_etag(self):
        context = make_context(
            make_response(207, ETAG_XML, {"Date": "Sat, 17 Oct 2026 10:00:00 GMT", **XML_HEADERS})
        )
        result = await RequestEtagJob(context, "Documents").run()

        assert result == EtagResult(
            etag="abc", timestamp=datetime(2026, 10, 17, 10, 0, tzinfo=timezone.utc)
        )
        (request,) = sent_requests(context)
        assert request.method is DAVMethod.PROPFIND
        assert request.url == DAV_URL + "Documents"
        assert request.headers["Depth"] == "0"
        assert request.body == build_etag_body()

    @pytest.mark.asyncio
    async def test_no_date(self):
        context = make_context(make_response(207, ETAG_XML, XML_HEADERS))
        result = await RequestEtagJob(context, "Documents").run()
        assert result.etag == "abc"
        assert result.timestamp is None

    @pytest.mark.asyncio
    async def test_not_multistatus(self):
        context = make_context(make_response(404))
        with pytest.raises(error.EtagError) as excinfo:
            await RequestEtagJob(context, "Documents").run()
        assert excinfo.value.status == 404
        assert "404" in excinfo.value.reason


class TestMkColJob:
    @pytest.mark.asyncio
    async def test_path(self):
        context = make_context(make_response(201))
        assert await MkColJob(context, "Documents/New").run() == 201
        (request,) = sent_requests(context)
        assert request.method is DAVMethod.MKCOL
        assert request.url == DAV_URL + "Documents/New"
        assert request.headers == {"Content-Length": "0"}
        assert request.body is None

    @pytest.mark.asyncio
    async def test_url_and_extra_headers(self):
        context = make_context(make_response(405))
        job = MkColJob(
            context,
            url="https://cloud.example.com/remote.php/dav/uploads/alice/1234",
            extra_headers={"OC-Total-Length": "4096"},
        )
        assert await job.run() == 405
        (request,) = sent_requests(context)
        assert request.url == "https://cloud.example.com/remote.php/dav/uploads/alice/1234"
        assert request.headers == {"Content-Length": "0", "OC-Total-Length": "4096"}


class TestLsColJob:
    @pytest.mark.asyncio
    async def test_listing(self):
        context = make_context(make_response(207, LISTING_XML, XML_HEADERS))
        entries = []
        job = LsColJob(
            context,
            "Documents",
            ["resourcetype", "getetag", "http://owncloud.org/ns:size"],
            on_entry=entries.append,
        )
        result = await job.run()

        assert len(entries) == 3
        assert entries[1].href == "/remote.php/webdav/Documents/Photos"
        assert result.folders == [
            "/remote.php/webdav/Documents/",
            "/remote.php/webdav/Documents/Photos/",
        ]
        assert job.sizes == result.sizes
        assert job.sizes["/remote.php/webdav/Documents/report final.odt"] == 2048

        (request,) = sent_requests(context)
        assert request.method is DAVMethod.PROPFIND
        assert request.url == DAV_URL + "Documents"
        assert request.headers["Depth"] == "1"
        assert b"<oc:size/>" in request.body
        assert b"<d:getetag/>" in request.body

    @pytest.mark.asyncio
    async def test_text_xml_without_charset(self):
        context = make_context(make_response(207, LISTING_XML, {"Content-Type": "text/xml"}))
        result = await LsColJob(context, "Documents", ["resourcetype"]).run()
        assert len(result.folders) == 2

    @pytest.mark.asyncio
    async def test_wrong_content_type(self):
        entries = []
        context = make_context(make_response(207, LISTING_XML, {"Content-Type": "text/html"}))
        with pytest.raises(error.LsColError) as excinfo:
            await LsColJob(context, "Documents", ["resourcetype"], on_entry=entries.append).run()
        assert excinfo.value.status == 207
        assert entries == []

    @pytest.mark.asyncio
    async def test_wrong_status(self):
        entries = []
        context = make_context(make_response(404, b"", XML_HEADERS))
        with pytest.raises(error.LsColError) as excinfo:
            await LsColJob(context, "Documents", ["resourcetype"], on_entry=entries.append).run()
        assert excinfo.value.status == 404
        assert entries == []

    @pytest.mark.asyncio
    async def test_href_outside_request_path(self):
        context = make_context(make_response(207, LISTING_XML, XML_HEADERS))
        with pytest.raises(error.ValidationError):
            await LsColJob(context, "Music", ["resourcetype"]).run()

    @pytest.mark.asyncio
    async def test_absolute_url(self):
        context = make_context(make_response(207, LISTING_XML, XML_HEADERS))
        job = LsColJob(context, properties=["resourcetype"], url=DAV_URL + "Documents")
        await job.run()
        assert sent_requests(context)[0].url == DAV_URL + "Documents"

    @pytest.mark.asyncio
    async def test_no_properties_warns(self, caplog):
        context = make_context(make_response(207, LISTING_XML, XML_HEADERS))
        await LsColJob(context, "Documents").run()
        assert "Propfind with no properties!" in caplog.text


class TestIsXmlUtf8:
    @pytest.mark.parametrize(
        "content_type",
        [
            "application/xml; charset=utf-8",
            "application/xml; charset=UTF-8",
            'text/xml; charset="utf-8"',
            "text/xml",
            "application/xml",
        ],
    )
    def test_accepted(self, content_type):
        assert is_xml_utf8(content_type)

    @pytest.mark.parametrize(
        "content_type",
        ["", None, "text/html", "application/json", "text/xml; charset=iso-8859-1"],
    )
    def test_rejected(self, content_type):
        assert not is_xml_utf8(content_type)


class TestPropfindJob:
    @pytest.mark.asyncio
    async def test_properties(self):
        context = make_context(make_response(207, PROPFIND_XML, XML_HEADERS))
        job = PropfindJob(
            context,
            "Documents/report.odt",
            ["http://owncloud.org/ns:fileid", "http://owncloud.org/ns:privatelink"],
        )
        assert await job.run() == {
            "fileid": "00000042ocabc",
            "privatelink": "https://cloud.example.com/f/42",
        }
        (request,) = sent_requests(context)
        assert request.priority is Priority.HIGH
        assert request.headers["Depth"] == "0"
        assert request.url == DAV_URL + "Documents/report.odt"
        assert b'<fileid xmlns="http://owncloud.org/ns"/>' in request.body

    @pytest.mark.asyncio
    async def test_redirect_is_an_error(self, caplog):
        context = make_context(
            make_response(302, headers={"Location": "https://other.example.com/"})
        )
        with pytest.raises(error.PropfindError) as excinfo:
            await PropfindJob(context, "a.txt", ["getetag"]).run()
        assert excinfo.value.status == 302
        assert "https://other.example.com/" in caplog.text

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        context = make_context(make_response(207, b"<d:multistatus xmlns:d='DAV:'>", XML_HEADERS))
        with pytest.raises(error.PropfindError):
            await PropfindJob(context, "a.txt", ["getetag"]).run()


class TestProppatchJob:
    @pytest.mark.asyncio
    async def test_success(self):
        context = make_context(make_response(207, b"", XML_HEADERS))
        job = ProppatchJob(context, "a.txt", {"http://owncloud.org/ns:favorite": "1"})
        assert await job.run() is True
        (request,) = sent_requests(context)
        assert request.method is DAVMethod.PROPPATCH
        assert request.url == DAV_URL + "a.txt"
        assert b"<oc:favorite>1</oc:favorite>" in request.body

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [200, 404, 500])
    async def test_failure(self, status):
        context = make_context(make_response(status))
        with pytest.raises(error.ProppatchError) as excinfo:
            await ProppatchJob(context, "a.txt", {"displayname": "x"}).run()
        assert excinfo.value.status == status


class TestEntityExistsJob:
    @pytest.mark.asyncio
    async def test_head(self):
        response = make_response(404)
        context = make_context(response)
        assert await EntityExistsJob(context, "remote.php/webdav/a.txt").run() is response
        (request,) = sent_requests(context)
        assert request.method is DAVMethod.HEAD
        assert request.url == BASE_URL + "remote.php/webdav/a.txt"
