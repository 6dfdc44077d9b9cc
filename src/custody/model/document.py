"""
Document as seen by the custody core.

Only title, content, user_id and created_at are cryptographically relevant.
The remaining fields belong to the external document collaborator; the core
touches them solely through DocumentStore.mark_signed().
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class Document:
    """
    Документ.

    Атрибуты:
        id: Идентификатор документа
        title: Заголовок
        content: Содержимое
        user_id: Владелец документа
        created_at: Сохранённая метка создания (строка в том виде, как её хранит источник)
        serial: Внешний серийный номер (для QR-ссылок)
        signed: Флаг подписи (внешнее состояние)
        signed_at: Время подписи (внешнее состояние)
        certificate_id: kid ключа, связанного с документом (внешнее состояние)
        status: Внешний статус документа
    """

    id: str
    title: str
    content: Optional[str]
    user_id: str
    created_at: Optional[str]
    serial: Optional[str] = None
    signed: bool = False
    signed_at: Optional[str] = None
    certificate_id: Optional[str] = None
    status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "user_id": self.user_id,
            "created_at": self.created_at,
            "serial": self.serial,
            "signed": self.signed,
            "signed_at": self.signed_at,
            "certificate_id": self.certificate_id,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Document:
        return cls(
            id=data["id"],
            title=data["title"],
            content=data.get("content"),
            user_id=data["user_id"],
            created_at=data.get("created_at"),
            serial=data.get("serial"),
            signed=bool(data.get("signed", False)),
            signed_at=data.get("signed_at"),
            certificate_id=data.get("certificate_id"),
            status=data.get("status"),
        )


__all__ = ["Document"]
