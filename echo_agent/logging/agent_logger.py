"""
Agent Logger for Markdown Execution Logs.
Creates human-readable logs of conversation turns, handoffs and failures.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class AgentLogger:
    """
    Markdown logger for agent execution.

    Creates structured, human-readable logs that document:
    - Conversation turns with intent, confidence and sentiment
    - Human handoffs and the clauses that triggered them
    - Provider and storage errors
    - System events
    """

    def __init__(self, log_path: str = "logs/agent_log.md"):
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        self._queue: asyncio.Queue = asyncio.Queue()
        self._writer_task: Optional[asyncio.Task] = None
        self._running = False

        # Start the async writer
        self._start_writer()

    def _start_writer(self):
        """Start the background log writer."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No event loop, will write synchronously
            return

        self._writer_task = asyncio.create_task(self._write_loop())
        self._running = True

    async def _write_loop(self):
        """Background loop to write logs asynchronously."""
        while True:
            try:
                entry = await self._queue.get()
                self._sync_write(entry)
            except asyncio.CancelledError:
                break

    def _sync_write(self, entry: str):
        """Append an entry to the log file."""
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(entry)
                f.write("\n")
        except OSError as e:
            logger.error(f"Failed to write log: {e}")

    async def _log(self, entry: str):
        """Add a log entry to the queue."""
        if self._running and self._writer_task:
            await self._queue.put(entry)
        else:
            self._sync_write(entry)

    # =========================
    # Public Logging Methods
    # =========================

    async def log_turn(
        self,
        session_id: str,
        user_text: str,
        agent_text: str,
        analysis: Dict[str, Any],
        handoff_needed: bool,
        latency_ms: Optional[float] = None
    ):
        """Log a complete conversation turn."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        sentiment = analysis.get("sentiment", 0.5)
        if sentiment < 0.3:
            mood = "🔴 Negative"
        elif sentiment > 0.7:
            mood = "🟢 Positive"
        else:
            mood = "🟡 Neutral"

        display_response = agent_text
        if len(agent_text) > 500:
            display_response = agent_text[:500] + "..."

        entry = f"""### 💬 Turn | {timestamp}

**Session:** `{session_id}`
**User:** "{user_text}"

> {display_response}

| Signal | Value |
|--------|-------|
| Intent | `{analysis.get('intent')}` |
| Confidence | {analysis.get('confidence', 0):.2f} |
| Sentiment | {mood} ({sentiment:.2f}) |
| Urgent | {'yes' if analysis.get('is_urgent') else 'no'} |
| Handoff | {'yes' if handoff_needed else 'no'} |
{f'| Latency | {latency_ms:.0f}ms |' if latency_ms is not None else ''}
"""
        await self._log(entry)

    async def log_handoff(
        self,
        session_id: str,
        reason: str,
        triggers: List[str],
        context_summary: str
    ):
        """Log a handoff request."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        entry = f"""#### 🙋 Handoff Requested | {timestamp}

**Session:** `{session_id}`
**Stored Reason:** {reason}
**Triggered By:** {', '.join(triggers) if triggers else 'unknown'}
**Context:** {context_summary}
"""
        await self._log(entry)

    async def log_error(
        self,
        session_id: str,
        error_type: str,
        error_message: str,
        stack_trace: Optional[str] = None
    ):
        """Log an error."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        entry = f"""### ❌ Error | {timestamp}

**Session:** `{session_id}`
**Type:** `{error_type}`
**Message:** {error_message}
"""

        if stack_trace:
            entry += f"""
<details>
<summary>Stack Trace</summary>

```
{stack_trace}
```

</details>
"""

        await self._log(entry)

    async def log_system_event(
        self,
        event: str,
        details: Dict[str, Any]
    ):
        """Log a system event."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        details_str = ""
        for key, value in details.items():
            details_str += f"- **{key}:** {value}\n"

        entry = f"""### ⚙️ System Event | {timestamp}

**Event:** {event}

{details_str}
---
"""
        await self._log(entry)

    async def initialize_log(self, version: str = "1.0.0"):
        """Initialize the log file with header."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        header = f"""# 🎙️ Echo Voice Agent Execution Log

**Generated:** {timestamp}
**Version:** {version}

---

## System Overview

This log documents the execution of the Echo voice customer-support agent.

**Pipeline:** Audio → Deepgram STT → Intent/Sentiment Rules → Azure TTS → Audio

---

## Execution Log

"""

        # Overwrite file with header
        with open(self.log_path, "w", encoding="utf-8") as f:
            f.write(header)

        logger.info(f"Agent log initialized: {self.log_path}")

    async def close(self):
        """Close the logger and flush pending entries."""
        self._running = False

        if self._writer_task:
            self._writer_task.cancel()
            try:
                await self._writer_task
            except asyncio.CancelledError:
                pass
            self._writer_task = None

        # Write any remaining entries
        while not self._queue.empty():
            try:
                entry = self._queue.get_nowait()
                self._sync_write(entry)
            except asyncio.QueueEmpty:
                break

        logger.info("Agent logger closed")
