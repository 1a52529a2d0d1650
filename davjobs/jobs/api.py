#!/usr/bin/env python
"""
Jobs talking to the non-DAV endpoints of the server: the OCS/JSON API
and the avatar images.
"""

import json
import re
from io import BytesIO
from typing import Any, Iterable, Mapping, Optional, Tuple, Union
from urllib.parse import quote

from PIL import Image
from PIL import ImageDraw

from davjobs.context import ServerContext
from davjobs.lib import error
from davjobs.lib.url import concat_url_path
from davjobs.protocol.types import DAVMethod, DAVRequest, DAVResponse, JsonApiResult

from .base import NetworkJob

## Servers at or above this version serve avatars through the DAV endpoint
AVATAR_DAV_MIN_VERSION = (10, 0, 0)

## OCS errors sometimes come as an XML envelope even when json was asked for
_OCS_XML_MARKER = '<?xml version="1.0"?>'
_OCS_XML_STATUSCODE = re.compile(r"<statuscode>(\d+)</statuscode>")
## {"ocs":{"meta":{"status":"ok","statuscode":100,"message":null},"data":...
_OCS_JSON_STATUSCODE = re.compile(r'"statuscode":(\d+),')


def ocs_status_code(text: str) -> int:
    """
    Scan the raw body for an OCS status code, 0 if there is none.

    This is plain text matching, not parsing: a "statuscode" anywhere in
    the document is picked up.
    """
    if _OCS_XML_MARKER in text:
        match = _OCS_XML_STATUSCODE.search(text)
    else:
        match = _OCS_JSON_STATUSCODE.search(text)
    return int(match.group(1)) if match else 0


class JsonApiJob(NetworkJob):
    """
    GET an OCS API endpoint, i.e. "ocs/v1.php/cloud/capabilities".

    Resolves with a JsonApiResult.  A body that is not valid JSON still
    resolves (json is None), so does a transport failure or a HTTP
    error status (json None, status code 0).
    """

    log_name = "davjobs.networkjob.jsonapi"

    def __init__(self, context: ServerContext, path: str, **kwargs: Any) -> None:
        super().__init__(context, path, **kwargs)
        self.query_params: list = []

    def add_query_params(
        self, params: Union[Mapping[str, str], Iterable[Tuple[str, str]]]
    ) -> None:
        """Extra query items, format=json is always added"""
        items = params.items() if isinstance(params, Mapping) else params
        self.query_params = list(items)

    def build_request(self) -> DAVRequest:
        query = self.query_params + [("format", "json")]
        url = concat_url_path(self.context.url, self.path, query)
        return self.make_request(DAVMethod.GET, url, {"OCS-APIREQUEST": "true"})

    def transport_failed(self, exc: error.TransportError) -> JsonApiResult:
        self.log.warning(f"Network error: {self.path} {exc.reason}")
        return JsonApiResult(json=None, status_code=0)

    def finished(self, response: DAVResponse) -> JsonApiResult:
        self.log.info(
            f"JsonApiJob of {self.request.url} FINISHED WITH STATUS {self.reply_status_string()}"
        )
        if response.status >= 400:
            self.log.warning(f"Network error: {self.path} {self.error_string()}")
            return JsonApiResult(json=None, status_code=0)

        text = response.text
        status_code = ocs_status_code(text)
        try:
            document = json.loads(text)
        except ValueError as e:
            self.log.warning(f"invalid JSON! {text!r} {e}")
            return JsonApiResult(json=None, status_code=status_code)
        return JsonApiResult(json=document, status_code=status_code)


def make_circular_avatar(base_avatar: Image.Image) -> Image.Image:
    """
    Mask an avatar to a circle of the image's width.  The area outside
    the circle becomes transparent.
    """
    dim = base_avatar.width
    mask = Image.new("L", (dim, dim), 0)
    ImageDraw.Draw(mask).ellipse((0, 0, dim - 1, dim - 1), fill=255)
    avatar = Image.new("RGBA", (dim, dim), (0, 0, 0, 0))
    avatar.paste(base_avatar.convert("RGBA").crop((0, 0, dim, dim)), (0, 0), mask)
    return avatar


class AvatarJob(NetworkJob):
    """
    Fetch the avatar of a user.  Resolves with a PIL image, or None
    when the server has none (any status but 200, or a body that is not
    an image).
    """

    log_name = "davjobs.networkjob.avatar"

    def __init__(self, context: ServerContext, user_id: str, size: int, **kwargs: Any) -> None:
        super().__init__(context, **kwargs)
        self.user_id = user_id
        self.size = size
        if context.server_version_at_least(*AVATAR_DAV_MIN_VERSION):
            path = f"remote.php/dav/avatars/{quote(user_id, safe='')}/{size}.png"
        else:
            path = f"index.php/avatar/{quote(user_id, safe='')}/{size}"
        self.avatar_url = context.make_account_url(path)

    def build_request(self) -> DAVRequest:
        return self.make_request(DAVMethod.GET, self.avatar_url)

    def finished(self, response: DAVResponse) -> Optional[Image.Image]:
        if response.status != 200 or not response.body:
            return None
        try:
            image = Image.open(BytesIO(response.body))
            image.load()
        except (OSError, Image.DecompressionBombError) as e:
            self.log.debug(f"no usable avatar for {self.user_id}: {e}")
            return None
        self.log.debug("Retrieved avatar image")
        return image
