"""Nginx configuration file parser."""

from pathlib import Path
from typing import List, Tuple, Union
from loguru import logger
from models.config_ast import (
    Block, Directive, Node, ParseResult, Token, TokenKind, STRUCTURAL_TOKENS
)
from utils.encoding_utils import read_config_text


QUOTE_CHARS = ("'", '"')
COMMENT_CHAR = "#"
ESCAPE_CHAR = "\\"


def tokenize_config(text: str) -> List[Token]:
    """
    将配置文本拆分为词法单元

    规则：空白分隔单词；# 开始行注释；单/双引号内按字面读取，
    反斜杠转义下一个字符；{ } ; 始终是独立的单元。
    未闭合的引号不会报错，按已读取的内容输出。

    Args:
        text: 配置内容

    Returns:
        Token 列表
    """
    tokens: List[Token] = []
    current: List[str] = []
    quoted = False  # 当前单元是否包含引号部分
    quote = None
    i = 0
    length = len(text)

    def push_current():
        nonlocal quoted
        if current:
            kind = TokenKind.STRING if quoted else TokenKind.WORD
            tokens.append(Token(kind, "".join(current)))
            current.clear()
        quoted = False

    while i < length:
        ch = text[i]

        if quote:
            if ch == quote:
                quote = None
            elif ch == ESCAPE_CHAR and i + 1 < length:
                current.append(text[i + 1])
                i += 1
            else:
                current.append(ch)
            i += 1
            continue

        if ch in QUOTE_CHARS:
            quote = ch
            quoted = True
        elif ch == COMMENT_CHAR:
            push_current()
            newline = text.find("\n", i)
            i = length if newline == -1 else newline
            continue
        elif ch.isspace():
            push_current()
        elif ch in STRUCTURAL_TOKENS:
            push_current()
            tokens.append(Token(STRUCTURAL_TOKENS[ch], ch))
        else:
            current.append(ch)
        i += 1

    push_current()
    return tokens


class _TokenParser:
    """单次从左到右的递归下降解析器，遇到错误结构时尽力而为."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0
        self.unclosed_blocks = 0
        self.unmatched_closers = 0
        self.dangling_directives = 0

    def parse(self) -> ParseResult:
        nodes = self._parse_level(depth=0)
        return ParseResult(
            nodes=nodes,
            unclosed_blocks=self.unclosed_blocks,
            unmatched_closers=self.unmatched_closers,
            dangling_directives=self.dangling_directives,
        )

    def _collect_group(self) -> Tuple[List[str], Union[Token, None]]:
        """收集参数直到遇到 ; { } 或输入结束."""
        parts = []
        while self.pos < len(self.tokens):
            token = self.tokens[self.pos]
            if token.is_structural:
                return parts, token
            parts.append(token.value)
            self.pos += 1
        return parts, None

    def _parse_level(self, depth: int) -> List[Node]:
        items: List[Node] = []

        while self.pos < len(self.tokens):
            if self.tokens[self.pos].kind == TokenKind.RBRACE:
                self.pos += 1
                if depth > 0:
                    return items
                # 顶层多余的 '}'：跳过继续解析
                self.unmatched_closers += 1
                continue

            parts, end = self._collect_group()

            if not parts:
                # 空组（直接遇到 ; 或 {）
                self.pos += 1
                continue

            name, args = parts[0], parts[1:]

            if end is None:
                # 输入在指令中间结束：没有结束符的片段直接丢弃
                self.dangling_directives += 1
                break

            if end.kind == TokenKind.SEMICOLON:
                self.pos += 1
                items.append(Directive(name=name, args=args))
            elif end.kind == TokenKind.LBRACE:
                self.pos += 1
                children = self._parse_level(depth + 1)
                items.append(Block(name=name, args=args, children=children))
            else:
                # 缺少 ';' 直接遇到 '}'，'}' 留给循环关闭当前层
                items.append(Directive(name=name, args=args))
                self.dangling_directives += 1

        if depth > 0:
            self.unclosed_blocks += 1
        return items


def parse_tokens(tokens: List[Token]) -> ParseResult:
    """
    将 Token 列表解析为语法树

    Args:
        tokens: tokenize_config 的结果

    Returns:
        ParseResult（从不抛出异常）
    """
    return _TokenParser(tokens).parse()


def find_blocks(nodes: List[Node], name: str) -> List[Block]:
    """查找直接子节点中指定名称的块."""
    return [node for node in nodes if isinstance(node, Block) and node.name == name]


def find_directives(nodes: List[Node], name: str) -> List[Directive]:
    """查找直接子节点中指定名称的指令."""
    return [node for node in nodes if isinstance(node, Directive) and node.name == name]


class ConfigParser:
    """Nginx配置文件解析器."""

    def parse_config_content(self, content: str) -> ParseResult:
        """
        解析配置内容

        Args:
            content: 配置内容

        Returns:
            解析结果
        """
        tokens = tokenize_config(content)
        result = parse_tokens(tokens)
        logger.debug(f"Parsed {len(tokens)} tokens into {len(result.nodes)} top-level nodes")

        if not result.is_complete:
            logger.warning(
                f"Config structure is incomplete: unclosed_blocks={result.unclosed_blocks}, "
                f"unmatched_closers={result.unmatched_closers}, "
                f"dangling_directives={result.dangling_directives}"
            )
        return result

    def parse_config_file(self, config_path: Union[str, Path]) -> ParseResult:
        """
        读取并解析 nginx.conf

        Args:
            config_path: 配置文件路径

        Returns:
            解析结果

        Raises:
            FileNotFoundError: 文件不存在
        """
        content = read_config_text(config_path)
        logger.debug(f"Parsing config: {config_path} (size: {len(content)} chars)")
        return self.parse_config_content(content)
