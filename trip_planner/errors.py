"""Error taxonomy shared by the itinerary model, the adapters and the API."""
from __future__ import annotations

from typing import Optional


class TripPlannerError(Exception):
    """Base class. ``message`` is the traveller-facing text."""

    http_status = 500
    default_message = "エラーが発生しました"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TripPlannerError):
    """A required field is blank or a value is out of range."""

    http_status = 400
    default_message = "入力内容が正しくありません"


class ReorderNotAllowed(ValidationError):
    default_message = "この並び替えはできません"


class SpotNotFound(TripPlannerError):
    http_status = 404
    default_message = "スポットが見つかりません"

    def __init__(self, spot_id: str):
        self.spot_id = spot_id
        super().__init__(f"{self.default_message} ({spot_id})")


class PlaceNotFound(TripPlannerError):
    http_status = 404
    default_message = "場所が見つかりません"

    def __init__(self, query: str = "", message: Optional[str] = None):
        self.query = query
        super().__init__(message)


class RouteNotFound(TripPlannerError):
    http_status = 404
    default_message = "このルートは見つかりません"


class UpstreamError(TripPlannerError):
    """The routing backend answered with a status we do not understand."""

    http_status = 404

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"ルート取得失敗 ({status})")


class CommunicationError(TripPlannerError):
    """Network failure, timeout or malformed response from an adapter."""

    default_message = "通信エラーが発生しました"


class ConfigurationError(TripPlannerError):
    http_status = 500
    default_message = "設定が不足しています"
