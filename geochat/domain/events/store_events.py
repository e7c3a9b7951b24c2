"""
Document Store Change Events

쓰기마다 변경 채널로 발행되는 페이로드입니다. 구독자는 before/after 이미지로
자신의 쿼리에 해당하는 변경인지 판단합니다.
"""

import json
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Dict, Optional

from geochat.utils.time_utils import from_millis, to_millis

EVENT_TYPE = "document_changed"


@dataclass
class DocumentChanged:
    """문서 변경 이벤트 (변경 피드 페이로드)"""
    collection: str
    doc_id: str
    op: str  # "set", "delete"
    before: Optional[Dict[str, Any]]
    after: Optional[Dict[str, Any]]
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        # 저장 문서와 같은 epoch 밀리초 표현
        data["timestamp"] = to_millis(self.timestamp)
        data["type"] = EVENT_TYPE
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentChanged":
        if data.get("type") != EVENT_TYPE:
            raise ValueError(f"Unexpected event type: {data.get('type')!r}")
        timestamp = from_millis(data.get("timestamp"))
        if timestamp is None:
            raise ValueError("Change event has no timestamp")
        return cls(
            collection=data["collection"],
            doc_id=data["doc_id"],
            op=data["op"],
            before=data.get("before"),
            after=data.get("after"),
            timestamp=timestamp,
        )

    @classmethod
    def from_json(cls, raw: str) -> "DocumentChanged":
        return cls.from_dict(json.loads(raw))
