"""Trello REST API v1 provider."""

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from boardmd.errors import RemoteError
from boardmd.models import Board, BoardList, Card, Label
from boardmd.providers.base import BoardProvider, Position
from boardmd.settings import BoardmdSettings

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

BASE_URL = "https://api.trello.com/1"

_BOARD_FIELDS = "id,name,desc,closed,url,prefs"
_LIST_FIELDS = "id,name,closed,pos,idBoard,subscribed"

_STATUS_MESSAGES = {
    400: "bad request, check the request parameters",
    401: "unauthorised, check your API key and token",
    403: "forbidden, you don't have permission for this action",
    404: "not found, the requested resource doesn't exist",
    409: "conflict, the request conflicts with the current state",
    429: "too many requests, the rate limit was exceeded",
    500: "internal server error, please try again later",
    503: "service unavailable, Trello may be experiencing issues",
}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if message:
            return str(message)
    if body is None and response.text.strip():
        return response.text.strip()
    return _STATUS_MESSAGES.get(response.status_code, f"HTTP {response.status_code} error")


def _parse(model: type[ModelT], node: Any) -> ModelT:
    try:
        return model.model_validate(node)
    except ValidationError as exc:
        raise RemoteError(f"unexpected Trello response for {model.__name__}: {exc.error_count()} invalid field(s)") from exc


def _parse_all(model: type[ModelT], nodes: Any) -> list[ModelT]:
    if not isinstance(nodes, list):
        raise RemoteError(f"unexpected Trello response: expected a list of {model.__name__} objects")
    return [_parse(model, node) for node in nodes]


class TrelloProvider(BoardProvider):
    def __init__(self, settings: BoardmdSettings) -> None:
        if not settings.trello_api_key or not settings.trello_token:
            raise RemoteError("No Trello credentials. Run: boardmd init")
        key = settings.trello_api_key.get_secret_value()
        token = settings.trello_token.get_secret_value()
        self._headers = {
            "Authorization": f'OAuth oauth_consumer_key="{key}", oauth_token="{token}"',
            "Accept": "application/json",
        }

    def _request(self, method: str, path: str, params: dict | None = None, body: dict | None = None) -> Any:
        logger.debug("%s %s", method, path)
        try:
            response = httpx.request(
                method,
                f"{BASE_URL}{path}",
                headers=self._headers,
                params=params or {},
                json=body,
                timeout=30,
            )
        except httpx.RequestError as exc:
            raise RemoteError(f"Trello request failed: {exc}") from exc
        if response.status_code == 401:
            raise RemoteError(
                f"Trello API returned 401: {_error_message(response)}. "
                "Run boardmd init to update credentials for the active profile.",
                401,
            )
        if not response.is_success:
            raise RemoteError(f"Trello API error: {_error_message(response)}", response.status_code)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError(f"Trello returned a non-JSON response for {method} {path}", response.status_code) from exc

    def _get(self, path: str, params: dict | None = None) -> Any:
        return self._request("GET", path, params=params)

    def _post(self, path: str, body: dict) -> Any:
        return self._request("POST", path, body=body)

    def _put(self, path: str, body: dict) -> Any:
        return self._request("PUT", path, body=body)

    def _delete(self, path: str) -> None:
        self._request("DELETE", path)

    # --- reads ---

    def list_boards(self) -> list[Board]:
        nodes = self._get("/members/me/boards", params={"filter": "open", "fields": "id,name,desc,closed,url"})
        return _parse_all(Board, nodes)

    def fetch_board(self, board_id: str) -> Board:
        return _parse(Board, self._get(f"/boards/{board_id}", params={"fields": _BOARD_FIELDS}))

    def fetch_labels(self, board_id: str) -> list[Label]:
        return _parse_all(Label, self._get(f"/boards/{board_id}/labels"))

    def fetch_lists(self, board_id: str) -> list[BoardList]:
        nodes = self._get(f"/boards/{board_id}/lists", params={"filter": "open", "fields": _LIST_FIELDS})
        return _parse_all(BoardList, nodes)

    def fetch_cards(self, list_id: str) -> list[Card]:
        return _parse_all(Card, self._get(f"/lists/{list_id}/cards"))

    def fetch_list(self, list_id: str) -> BoardList:
        return _parse(BoardList, self._get(f"/lists/{list_id}", params={"fields": _LIST_FIELDS}))

    def fetch_card(self, card_id: str) -> Card:
        return _parse(Card, self._get(f"/cards/{card_id}"))

    # --- board + labels ---

    def update_board(self, board_id: str, fields: dict[str, Any]) -> Board:
        return _parse(Board, self._put(f"/boards/{board_id}", fields))

    def create_label(self, board_id: str, name: str, color: str | None) -> Label:
        return _parse(Label, self._post("/labels", {"idBoard": board_id, "name": name, "color": color}))

    def update_label(self, label_id: str, fields: dict[str, Any]) -> Label:
        return _parse(Label, self._put(f"/labels/{label_id}", fields))

    def delete_label(self, label_id: str) -> None:
        self._delete(f"/labels/{label_id}")

    # --- lists ---

    def create_list(self, board_id: str, name: str, pos: Position) -> BoardList:
        return _parse(BoardList, self._post("/lists", {"idBoard": board_id, "name": name, "pos": pos}))

    def update_list(self, list_id: str, fields: dict[str, Any]) -> BoardList:
        return _parse(BoardList, self._put(f"/lists/{list_id}", fields))

    def archive_list(self, list_id: str) -> BoardList:
        return _parse(BoardList, self._put(f"/lists/{list_id}/closed", {"value": True}))

    # --- cards ---

    def create_card(self, list_id: str, name: str, pos: Position, due_complete: bool = False) -> Card:
        body = {"idList": list_id, "name": name, "pos": pos, "dueComplete": due_complete}
        return _parse(Card, self._post("/cards", body))

    def update_card(self, card_id: str, fields: dict[str, Any]) -> Card:
        return _parse(Card, self._put(f"/cards/{card_id}", fields))

    def delete_card(self, card_id: str) -> None:
        self._delete(f"/cards/{card_id}")

    def add_card_label(self, card_id: str, label_id: str) -> None:
        self._post(f"/cards/{card_id}/idLabels", {"value": label_id})

    def remove_card_label(self, card_id: str, label_id: str) -> None:
        self._delete(f"/cards/{card_id}/idLabels/{label_id}")
