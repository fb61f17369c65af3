"""
HTML cleaning for extraction and LLM prompts.

Strips scripts, navigation, cookie banners and hidden nodes, picks the main
content container and returns normalized text capped to a token budget.
"""

import re
import logging
from typing import List, Optional

from bs4 import BeautifulSoup, Comment

logger = logging.getLogger(__name__)

MAX_TOKENS = 25_000
CHARS_PER_TOKEN = 3
MIN_CONTENT_LENGTH = 100

REMOVE_SELECTORS = [
    "script", "style", "noscript", "svg", "iframe",
    "nav", "header", "footer",
    "[class*='cookie']", "[id*='cookie']",
    "[class*='consent']", "[id*='consent']",
    "[class*='popup']", "[id*='popup']",
    "[class*='modal']", "[id*='modal']",
    "[style*='display:none']", "[style*='display: none']", "[hidden]",
]

MAIN_CONTENT_SELECTORS = [
    "main", "article", "[role='main']",
    ".content", "#content", ".main-content",
    "#root", "#app", "#__next",
    "[class*='container']", "[class*='content']",
    "body",
]


class HtmlCleaner:
    """Board-agnostic cleaner; board cleaners override the selector lists"""

    def __init__(
        self,
        remove_selectors: Optional[List[str]] = None,
        content_selectors: Optional[List[str]] = None,
        max_tokens: int = MAX_TOKENS
    ):
        self.remove_selectors = remove_selectors or REMOVE_SELECTORS
        self.content_selectors = content_selectors or MAIN_CONTENT_SELECTORS
        self.max_chars = max_tokens * CHARS_PER_TOKEN

    def clean(self, html: Optional[str]) -> str:
        if not html or not html.strip():
            return ""

        soup = BeautifulSoup(html, 'lxml')
        for selector in self.remove_selectors:
            for node in soup.select(selector):
                node.decompose()
        for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
            comment.extract()

        container = self._main_content(soup)
        text = container.get_text(separator='\n') if container else ''
        return self._truncate(self._normalize_whitespace(text))

    def _main_content(self, soup: BeautifulSoup):
        for selector in self.content_selectors:
            node = soup.select_one(selector)
            if node and len(node.get_text(strip=True)) >= MIN_CONTENT_LENGTH:
                return node

        # Fall back to the div carrying the most text
        body = soup.body or soup
        divs = body.find_all('div')
        if divs:
            return max(divs, key=lambda d: len(d.get_text(strip=True)))
        return body

    @staticmethod
    def _normalize_whitespace(text: str) -> str:
        text = re.sub(r'[ \t\r\f\v]+', ' ', text)
        lines = [line.strip() for line in text.split('\n')]
        text = '\n'.join(lines)
        text = re.sub(r'\n{3,}', '\n\n', text)
        return text.strip()

    def _truncate(self, text: str) -> str:
        if len(text) <= self.max_chars:
            return text
        truncated = text[:self.max_chars]
        # End on a sentence boundary when one exists
        last_period = truncated.rfind('.')
        if last_period > 0:
            truncated = truncated[:last_period + 1]
        return truncated


def clean_html(html: Optional[str]) -> str:
    return HtmlCleaner().clean(html)


def visible_text_length(html: Optional[str]) -> int:
    """Length of the text a reader would see, ignoring scripts and styles"""
    if not html:
        return 0
    soup = BeautifulSoup(html, 'lxml')
    for node in soup(['script', 'style', 'noscript']):
        node.decompose()
    return len(re.sub(r'\s+', ' ', soup.get_text(' ')).strip())
