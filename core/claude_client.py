#!/usr/bin/env python3
"""
Claude API Client
Handles all interactions with the Anthropic Messages API
"""

import asyncio
import json
import logging
import re
from typing import Any, Dict, Optional

import anthropic

from core.config import Config

logger = logging.getLogger(__name__)


def extract_json_from_response(response: str) -> Optional[Dict[str, Any]]:
    """
    Extract and parse the first JSON object from a model response

    Tries fenced code blocks first, then scans for the first balanced
    brace pair.

    Returns:
        Parsed dictionary, or None when no valid JSON object is present
    """
    if not response:
        return None

    code_block_patterns = [
        (r'```json\s*(.*?)\s*```', 'json code block'),
        (r'```\s*(.*?)\s*```', 'generic code block'),
    ]

    for pattern, pattern_name in code_block_patterns:
        match = re.search(pattern, response, re.DOTALL | re.IGNORECASE)
        if match:
            content = match.group(1).strip()
            if content.startswith('{'):
                try:
                    parsed = json.loads(content)
                    if isinstance(parsed, dict):
                        return parsed
                except json.JSONDecodeError as e:
                    logger.debug(f"   ❌ [JSON] {pattern_name} failed: {e}")

    start_idx = response.find('{')
    if start_idx != -1:
        brace_count = 0
        in_string = False
        escaped = False
        for i, char in enumerate(response[start_idx:], start=start_idx):
            if in_string:
                if escaped:
                    escaped = False
                elif char == '\\':
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == '{':
                brace_count += 1
            elif char == '}':
                brace_count -= 1
                if brace_count == 0:
                    json_candidate = response[start_idx:i + 1]
                    try:
                        parsed = json.loads(json_candidate)
                        return parsed if isinstance(parsed, dict) else None
                    except json.JSONDecodeError as e:
                        logger.debug(f"   ❌ [JSON] Balanced braces failed: {e}")
                        break

    logger.warning(f"   ⚠️ [JSON] No valid JSON found in {len(response)} char response")
    return None


class ClaudeClient:
    """Client for interacting with Claude through the Anthropic SDK"""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 max_tokens: Optional[int] = None, client: Optional[anthropic.Anthropic] = None):
        """
        Initialize Claude client

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY)
            model: Model name (defaults to Config.CLAUDE_MODEL)
            max_tokens: Response token limit
            client: Pre-built SDK client, mainly for tests
        """
        self.model = model or Config.CLAUDE_MODEL
        self.max_tokens = max_tokens or Config.CLAUDE_MAX_TOKENS

        if client is not None:
            self.client = client
            return

        api_key = api_key or Config.get_api_keys().get('claude')
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")
        self.client = anthropic.Anthropic(api_key=api_key)

    def call_api(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        """
        Call Claude with a single user prompt

        Args:
            prompt: The prompt to send to Claude
            max_tokens: Optional override of the response token limit

        Returns:
            Claude's response text

        Raises:
            anthropic.APIError subclasses for service failures,
            RuntimeError when the response is empty
        """
        logger.info(f"   🤖 [CLAUDE API] Sending prompt ({len(prompt)} chars)")

        message = self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens or self.max_tokens,
            messages=[{
                "role": "user",
                "content": prompt
            }]
        )

        response = "".join(
            block.text for block in message.content if getattr(block, 'type', 'text') == 'text'
        ).strip()

        if not response:
            logger.warning("   ⚠️ Claude API returned empty response")
            raise RuntimeError("Claude API returned empty response")

        logger.info(f"   ✅ [CLAUDE API] Received {len(response)} chars")
        return response

    async def call_api_async(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        """Run call_api in a worker thread so the event loop keeps serving requests"""
        return await asyncio.to_thread(self.call_api, prompt, max_tokens)

    async def call_json(self, prompt: str, max_tokens: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """Call Claude and parse a JSON object from the reply (None when unparseable)"""
        response = await self.call_api_async(prompt, max_tokens)
        return extract_json_from_response(response)
