#!/usr/bin/env python3
"""
Lightweight console client for the geminicli-bridge.

Usage:
    python console_client.py "Your prompt here"
    python console_client.py "Summarize this repo" gemini-3-pro-preview
    python console_client.py "Hello" gemini-3-flash-preview --no-stream

Set BRIDGE_URL to talk to a bridge that is not on the default address.
"""

import json
import os
import sys
import uuid

import requests

BRIDGE_URL = os.getenv("BRIDGE_URL", "http://127.0.0.1:18791")
API_URL = f"{BRIDGE_URL}/v1/chat/completions"
DEFAULT_MODEL = "gemini-3-flash-preview"

# The CLI may run tools before answering; match the bridge's own deadline
REQUEST_TIMEOUT = 300


def _print_usage(usage: dict | None, finish_reason: str | None) -> None:
    print(f"\n\n{'='*80}")
    if usage:
        print(f"Tokens: {usage['total_tokens']} "
              f"(prompt: {usage['prompt_tokens']}, "
              f"completion: {usage['completion_tokens']})")
    print(f"Finish: {finish_reason}")
    print(f"{'='*80}\n")


def stream_chat(prompt: str, model: str, headers: dict) -> None:
    """Stream a chat completion from the bridge and render it to the console."""
    headers = {**headers, "Accept": "text/event-stream"}
    payload = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "stream": True,
    }

    with requests.post(API_URL, headers=headers, json=payload, stream=True,
                       timeout=REQUEST_TIMEOUT) as response:
        if response.status_code != 200:
            _print_error(response)
            return

        for line in response.iter_lines():
            if not line:
                continue
            decoded_line = line.decode("utf-8")
            if not decoded_line.startswith("data:"):
                continue

            event_data = decoded_line[len("data:"):].strip()
            if event_data == "[DONE]":
                break

            try:
                chunk = json.loads(event_data)
            except json.JSONDecodeError as e:
                print(f"\n❌ JSON Parse Error: {e}", file=sys.stderr)
                continue

            choice = chunk["choices"][0]
            content = choice.get("delta", {}).get("content")
            if content:
                print(content, end="", flush=True)

            if choice.get("finish_reason"):
                _print_usage(chunk.get("usage"), choice["finish_reason"])


def complete_chat(prompt: str, model: str, headers: dict) -> None:
    """Request a buffered chat completion and print it."""
    payload = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
    }
    response = requests.post(API_URL, headers=headers, json=payload, timeout=REQUEST_TIMEOUT)
    if response.status_code != 200:
        _print_error(response)
        return

    completion = response.json()
    choice = completion["choices"][0]
    print(choice["message"]["content"], end="")
    _print_usage(completion.get("usage"), choice.get("finish_reason"))


def _print_error(response: requests.Response) -> None:
    try:
        error = response.json()["error"]
        print(f"\n❌ {response.status_code} {error['type']}: {error['message']}", file=sys.stderr)
    except (ValueError, KeyError):
        print(f"\n❌ {response.status_code}: {response.text}", file=sys.stderr)


if __name__ == "__main__":
    args = [arg for arg in sys.argv[1:] if arg != "--no-stream"]
    if not args:
        print("Usage: python console_client.py <prompt> [model] [--no-stream]")
        print("\nExamples:")
        print('  python console_client.py "Hello, world!"')
        print('  python console_client.py "Explain this error" gemini-3-pro-preview')
        print('  python console_client.py "Hello" gemini-3-flash-preview --no-stream')
        sys.exit(1)

    prompt = args[0]
    model = args[1] if len(args) > 1 else DEFAULT_MODEL
    request_headers = {
        "Content-Type": "application/json",
        "X-Request-ID": f"req_{uuid.uuid4().hex[:12]}",
    }

    print(f"\n{'='*80}")
    print(f"PROMPT: {prompt}")
    print(f"MODEL: {model}")
    print(f"REQUEST ID: {request_headers['X-Request-ID']}")
    print(f"{'='*80}\n")

    try:
        if "--no-stream" in sys.argv:
            complete_chat(prompt, model, request_headers)
        else:
            stream_chat(prompt, model, request_headers)
    except requests.exceptions.RequestException as e:
        print(f"\n❌ Request failed: {e}", file=sys.stderr)
        sys.exit(1)
