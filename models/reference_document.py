"""
参考资料相关的数据模型
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any


def new_id() -> str:
    """生成新的对象标识"""
    return uuid.uuid4().hex[:12]


class DocumentRole(str, Enum):
    """参考资料类别（取值与持久化格式保持一致）"""

    PRIMARY_SOURCE = "原著小说"
    LAYOUT_TEMPLATE = "排版参考"
    STYLE_TEMPLATE = "文笔参考"

    @property
    def label(self) -> str:
        return self.value


@dataclass(frozen=True)
class ReferenceDocument:
    """参考资料：创建后不可修改，只能由用户删除"""

    id: str
    name: str
    role: DocumentRole
    text_content: str
    media_type: str = "text/plain"

    @classmethod
    def create(
        cls,
        name: str,
        role: DocumentRole,
        text_content: str,
        media_type: str = "text/plain",
    ) -> "ReferenceDocument":
        return cls(
            id=new_id(),
            name=name,
            role=DocumentRole(role),
            text_content=text_content,
            media_type=media_type or "text/plain",
        )

    @property
    def length(self) -> int:
        return len(self.text_content)

    def to_dict(self) -> dict[str, Any]:
        """转换为字典格式（用于JSON序列化）"""
        return {
            "id": self.id,
            "name": self.name,
            "category": self.role.value,
            "content": self.text_content,
            "type": self.media_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReferenceDocument":
        """从字典创建实例（用于JSON反序列化）"""
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            role=DocumentRole(data.get("category", DocumentRole.PRIMARY_SOURCE.value)),
            text_content=data.get("content", "") or "",
            media_type=data.get("type", "") or "text/plain",
        )
