"""Nginx configuration syntax tree models using Pydantic."""

from enum import Enum
from typing import Annotated, List, Literal, NamedTuple, Union
from pydantic import BaseModel, ConfigDict, Field


class TokenKind(str, Enum):
    """词法单元类型."""
    WORD = "word"
    STRING = "string"
    LBRACE = "lbrace"
    RBRACE = "rbrace"
    SEMICOLON = "semicolon"


# 结构符号与类型的对应关系
STRUCTURAL_TOKENS = {
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    ";": TokenKind.SEMICOLON,
}


class Token(NamedTuple):
    """词法单元（类型, 值）."""
    kind: TokenKind
    value: str

    @property
    def is_structural(self) -> bool:
        return self.kind in (TokenKind.LBRACE, TokenKind.RBRACE, TokenKind.SEMICOLON)


class Directive(BaseModel):
    """以 ';' 结束的简单指令，例如 listen 8080;"""

    model_config = ConfigDict(frozen=True)

    type: Literal["directive"] = "directive"
    name: str = Field(..., min_length=1, description="指令名称")
    args: List[str] = Field(default_factory=list, description="指令参数")


class Block(BaseModel):
    """带 { } 子节点的块指令，例如 location /api { ... }"""

    model_config = ConfigDict(frozen=True)

    type: Literal["block"] = "block"
    name: str = Field(..., min_length=1, description="块名称")
    args: List[str] = Field(default_factory=list, description="块参数")
    children: List["Node"] = Field(default_factory=list, description="子节点")


# 只有两种节点形态，按 type 字段区分
Node = Annotated[Union[Directive, Block], Field(discriminator="type")]

Block.model_rebuild()


class ParseResult(BaseModel):
    """
    解析结果（尽力而为）

    解析器从不抛出异常，括号不匹配等问题只记录在计数器里，
    调用方可以根据 is_complete 判断配置是否完整。
    """

    nodes: List[Node] = Field(default_factory=list, description="顶层节点")
    unclosed_blocks: int = Field(default=0, ge=0, description="到达输入末尾仍未闭合的块数")
    unmatched_closers: int = Field(default=0, ge=0, description="顶层多余的 '}' 数量")
    dangling_directives: int = Field(default=0, ge=0, description="缺少 ';' 的指令数")

    @property
    def is_complete(self) -> bool:
        """配置结构是否完整."""
        return not (self.unclosed_blocks or self.unmatched_closers or self.dangling_directives)

    @property
    def is_empty(self) -> bool:
        return not self.nodes
