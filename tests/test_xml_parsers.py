"""
Unit tests for the streaming XML readers.

These tests verify protocol logic without any HTTP mocking required.
"""
import pytest

from davjobs.lib import error
from davjobs.protocol import (
    MultistatusEntry,
    MultistatusParser,
    build_proppatch_body,
    parse_etag,
    parse_etag_response,
    parse_multistatus,
    parse_propfind_properties,
)

EXPECTED_PATH = "/remote.php/webdav/Documents"

LISTING_XML = b"""<?xml version="1.0" encoding="utf-8"?>
<d:multistatus xmlns:d="DAV:" xmlns:oc="http://owncloud.org/ns">
  <d:response>
    <d:href>/remote.php/webdav/Documents/</d:href>
    <d:propstat>
      <d:prop>
        <d:resourcetype><d:collection/></d:resourcetype>
        <d:getetag>"5f3a"</d:getetag>
        <oc:size>1024</oc:size>
      </d:prop>
      <d:status>HTTP/1.1 200 OK</d:status>
    </d:propstat>
    <d:propstat>
      <d:prop>
        <oc:checksums/>
      </d:prop>
      <d:status>HTTP/1.1 404 Not Found</d:status>
    </d:propstat>
  </d:response>
  <d:response>
    <d:href>/remote.php/webdav/Documents/Photos/</d:href>
    <d:propstat>
      <d:prop>
        <d:resourcetype><d:collection/></d:resourcetype>
        <d:getetag>"9c01"</d:getetag>
        <oc:size>512</oc:size>
      </d:prop>
      <d:status>HTTP/1.1 200 OK</d:status>
    </d:propstat>
  </d:response>
  <d:response>
    <d:href>/remote.php/webdav/Documents/report%20final.odt</d:href>
    <d:propstat>
      <d:prop>
        <d:resourcetype/>
        <d:getetag>"77aa"</d:getetag>
        <oc:size>2048</oc:size>
      </d:prop>
      <d:status>HTTP/1.1 200 OK</d:status>
    </d:propstat>
  </d:response>
</d:multistatus>
"""


def multistatus(*responses: str) -> bytes:
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<d:multistatus xmlns:d="DAV:" xmlns:oc="http://owncloud.org/ns">'
        + "".join(responses)
        + "</d:multistatus>"
    ).encode("utf-8")


def response(href: str, *propstats: str) -> str:
    return f"<d:response><d:href>{href}</d:href>{''.join(propstats)}</d:response>"


def propstat(props: str, status: str = "HTTP/1.1 200 OK") -> str:
    return f"<d:propstat><d:prop>{props}</d:prop><d:status>{status}</d:status></d:propstat>"


class TestParseEtag:
    @pytest.mark.parametrize("raw", ['W/"abc-gzip"', '"abc"', "abc", 'W/"abc"', '"abc-gzip"'])
    def test_normalizes(self, raw):
        assert parse_etag(raw) == "abc"

    def test_empty(self):
        assert parse_etag("") == ""
        assert parse_etag(None) == ""

    def test_single_quote_char_is_kept(self):
        assert parse_etag('"') == '"'


class TestParseEtagResponse:
    def test_reads_getetag(self):
        body = multistatus(response("/remote.php/webdav/a.txt", propstat('<d:getetag>W/"abc-gzip"</d:getetag>')))
        assert parse_etag_response(body) == "abc"

    def test_concatenates_several_tags(self):
        body = multistatus(
            response(
                "/remote.php/webdav/a.txt",
                propstat('<d:getetag>"abc"</d:getetag>'),
                propstat('<d:getetag>"def"</d:getetag>'),
            )
        )
        assert parse_etag_response(body) == "abcdef"

    def test_tag_cleaning_to_nothing_is_used_verbatim(self):
        body = multistatus(response("/remote.php/webdav/a.txt", propstat('<d:getetag>""</d:getetag>')))
        assert parse_etag_response(body) == '""'

    def test_ignores_foreign_namespace(self):
        body = multistatus(
            response("/remote.php/webdav/a.txt", propstat('<oc:getetag>"nope"</oc:getetag>'))
        )
        assert parse_etag_response(body) == ""

    def test_malformed(self):
        with pytest.raises(error.EtagError):
            parse_etag_response(b"<d:multistatus xmlns:d='DAV:'><d:getetag>")


class TestParsePropfindProperties:
    def test_direct_children_of_prop(self):
        body = multistatus(
            response(
                "/remote.php/webdav/a.txt",
                propstat(
                    "<oc:fileid>00000042ocabc</oc:fileid>"
                    "<oc:privatelink>https://cloud.example.com/f/42</oc:privatelink>"
                    "<d:resourcetype><d:collection/></d:resourcetype>"
                ),
            )
        )
        assert parse_propfind_properties(body) == {
            "fileid": "00000042ocabc",
            "privatelink": "https://cloud.example.com/f/42",
            "resourcetype": "",
        }

    def test_nested_markup_is_skipped(self):
        body = multistatus(
            response(
                "/remote.php/webdav/a.txt",
                propstat("<oc:share-types>a<oc:share-type>0</oc:share-type>b</oc:share-types>"),
            )
        )
        assert parse_propfind_properties(body) == {"share-types": "ab"}

    def test_malformed(self):
        with pytest.raises(error.PropfindError):
            parse_propfind_properties(b"<d:multistatus xmlns:d='DAV:'><d:prop>")

    def test_proppatch_body_reads_back(self):
        properties = {
            "displayname": "Holiday photos",
            "http://owncloud.org/ns:favorite": "1",
            "urn:example:ns:color": "blue",
        }
        body = build_proppatch_body(properties)
        assert parse_propfind_properties(body) == {
            "displayname": "Holiday photos",
            "favorite": "1",
            "color": "blue",
        }


class TestMultistatusParser:
    def test_listing(self):
        entries, result = parse_multistatus(LISTING_XML, EXPECTED_PATH)

        assert [e.href for e in entries] == [
            "/remote.php/webdav/Documents",
            "/remote.php/webdav/Documents/Photos",
            "/remote.php/webdav/Documents/report final.odt",
        ]
        assert entries[0].properties == {
            "resourcetype": "<collection></collection>",
            "getetag": '"5f3a"',
            "size": "1024",
        }
        assert entries[0].is_collection
        assert entries[0].size == 1024
        assert not entries[2].is_collection
        assert entries[2].properties["resourcetype"] == ""
        assert entries[2].size == 2048

    def test_folders_and_sizes(self):
        entries, result = parse_multistatus(LISTING_XML, EXPECTED_PATH)
        assert result.folders == [
            "/remote.php/webdav/Documents/",
            "/remote.php/webdav/Documents/Photos/",
        ]
        assert result.sizes == {
            "/remote.php/webdav/Documents/": 1024,
            "/remote.php/webdav/Documents/Photos/": 512,
            "/remote.php/webdav/Documents/report final.odt": 2048,
        }

    def test_one_entry_per_response(self):
        body = multistatus(
            *(
                response(f"{EXPECTED_PATH}/file{i}.txt", propstat(f"<d:getetag>e{i}</d:getetag>"))
                for i in range(25)
            )
        )
        entries, result = parse_multistatus(body, EXPECTED_PATH)
        assert len(entries) == 25
        assert [e.properties for e in entries] == [{"getetag": f"e{i}"} for i in range(25)]

    def test_non_200_propstat_gives_empty_properties(self):
        body = multistatus(
            response(
                f"{EXPECTED_PATH}/gone.txt",
                propstat("<d:getetag>x</d:getetag><oc:size>5</oc:size>", "HTTP/1.1 404 Not Found"),
            )
        )
        entries, result = parse_multistatus(body, EXPECTED_PATH)
        assert entries == [MultistatusEntry(href=f"{EXPECTED_PATH}/gone.txt")]
        assert result.sizes == {}

    def test_last_200_propstat_wins(self):
        body = multistatus(
            response(
                f"{EXPECTED_PATH}/a.txt",
                propstat("<d:displayname>A</d:displayname>"),
                propstat("<d:getetag>x</d:getetag>"),
            )
        )
        entries, result = parse_multistatus(body, EXPECTED_PATH)
        assert entries[0].properties == {"getetag": "x"}

    def test_non_200_after_200_does_not_touch_properties(self):
        body = multistatus(
            response(
                f"{EXPECTED_PATH}/a.txt",
                propstat("<d:getetag>x</d:getetag>"),
                propstat("<d:displayname/>", "HTTP/1.1 404 Not Found"),
            )
        )
        entries, result = parse_multistatus(body, EXPECTED_PATH)
        assert entries[0].properties == {"getetag": "x"}

    def test_nested_property_content_is_flattened(self):
        body = multistatus(
            response(
                f"{EXPECTED_PATH}/a.txt",
                propstat('<oc:share-types><oc:share-type a="1">0</oc:share-type>\n</oc:share-types>'),
            )
        )
        entries, result = parse_multistatus(body, EXPECTED_PATH)
        assert entries[0].properties == {"share-types": "<share-type>0</share-type>\n"}

    def test_href_outside_expected_path(self):
        seen = []
        body = multistatus(
            response(f"{EXPECTED_PATH}/a.txt", propstat("<d:getetag>x</d:getetag>")),
            response("/remote.php/webdav/Other/b.txt", propstat("<d:getetag>y</d:getetag>")),
            response(f"{EXPECTED_PATH}/c.txt", propstat("<d:getetag>z</d:getetag>")),
        )
        with pytest.raises(error.ValidationError):
            MultistatusParser(EXPECTED_PATH, on_entry=seen.append).parse(body)
        assert [e.href for e in seen] == [f"{EXPECTED_PATH}/a.txt"]

    def test_expected_path_with_spaces(self):
        body = multistatus(response("/remote.php/webdav/My%20Files/", propstat("<d:resourcetype><d:collection/></d:resourcetype>")))
        entries, result = parse_multistatus(body, "/remote.php/webdav/My Files")
        assert result.folders == ["/remote.php/webdav/My Files/"]

    @pytest.mark.parametrize(
        "size", ["12abc", "-1", "1.5", "99999999999999999999", "1_000", "+5", " 7 7", "\u0661\u0662"]
    )
    def test_invalid_size(self, size):
        body = multistatus(response(f"{EXPECTED_PATH}/a.txt", propstat(f"<oc:size>{size}</oc:size>")))
        with pytest.raises(error.ValidationError):
            parse_multistatus(body, EXPECTED_PATH)

    def test_invalid_size_in_non_200_propstat_is_ignored(self):
        body = multistatus(
            response(f"{EXPECTED_PATH}/a.txt", propstat("<oc:size>junk</oc:size>", "HTTP/1.1 403 Forbidden"))
        )
        entries, result = parse_multistatus(body, EXPECTED_PATH)
        assert entries[0].size is None

    def test_no_multistatus(self):
        with pytest.raises(error.ProtocolError):
            parse_multistatus(b'<?xml version="1.0"?><d:error xmlns:d="DAV:"/>', EXPECTED_PATH)

    def test_empty_body(self):
        with pytest.raises(error.ProtocolError):
            parse_multistatus(b"", EXPECTED_PATH)

    def test_malformed_xml(self):
        body = LISTING_XML[: len(LISTING_XML) // 2]
        with pytest.raises(error.ProtocolError):
            parse_multistatus(body, EXPECTED_PATH)

    def test_large_body_is_fed_in_chunks(self):
        body = multistatus(
            *(
                response(f"{EXPECTED_PATH}/file{i}.txt", propstat(f"<d:getetag>{'e' * 40}{i}</d:getetag>"))
                for i in range(2000)
            )
        )
        assert len(body) > 64 * 1024
        entries, result = parse_multistatus(body, EXPECTED_PATH)
        assert len(entries) == 2000
        assert entries[-1].properties == {"getetag": "e" * 40 + "1999"}

    def test_parsing_twice_gives_same_result(self):
        first = parse_multistatus(LISTING_XML, EXPECTED_PATH)
        second = parse_multistatus(LISTING_XML, EXPECTED_PATH)
        assert first == second
