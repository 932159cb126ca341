"""
Page draft state codec.

Page drafts are edited collaboratively; the engine only ever needs the decoded
``{title, nodeIds, config}`` triple, and the inverse when a duplicated page
needs a fresh draft.
"""

import json
from abc import ABC, abstractmethod

from pydantic import ValidationError

from ...shared.exceptions import ParamsError
from .models import PageState


class PageStateCodec(ABC):
    """Converts between stored draft bytes and ``PageState``."""

    @abstractmethod
    def decode(self, data: bytes) -> PageState:
        pass

    @abstractmethod
    def encode(self, state: PageState) -> bytes:
        pass


class JsonPageStateCodec(PageStateCodec):
    """Stores drafts as a JSON document with camelCase keys."""

    def decode(self, data: bytes) -> PageState:
        try:
            return PageState.model_validate_json(data)
        except ValidationError as e:
            raise ParamsError(f"Invalid page state: {e}") from e

    def encode(self, state: PageState) -> bytes:
        return json.dumps(state.to_json_dict()).encode('utf-8')
