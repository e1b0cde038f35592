"""SSE管理器，用于处理实时进度更新和文件传输."""

import json
import base64
import asyncio
import logging
from typing import AsyncGenerator, Dict, List

from models.models import EntryPayload, ProgressMessage, SSEMessageType
from translator.run_controller import RunObserver, RunState


class SSEManager:
    """SSE管理器类."""

    def __init__(self):
        self.clients: Dict[str, asyncio.Queue] = {}  # 存储客户端连接

    def publish(self, task_id: str, message: ProgressMessage) -> None:
        """同步写入消息队列，供运行回调直接调用."""
        queue = self.clients.get(task_id)
        if queue is None:
            return
        payload = message.model_dump(mode="json", exclude_none=True)
        queue.put_nowait(f"data: {json.dumps(payload, ensure_ascii=False)}\n\n")

    async def send_progress(self, task_id: str, progress: float, message: str) -> None:
        """发送进度更新."""
        self.publish(
            task_id,
            ProgressMessage(type=SSEMessageType.PROGRESS, progress=progress, message=message),
        )

    async def send_result(
        self, task_id: str, entries: List[EntryPayload], state: Dict
    ) -> None:
        """发送翻译后的条目."""
        self.publish(
            task_id,
            ProgressMessage(type=SSEMessageType.RESULT, entries=entries, state=state),
        )

    async def send_complete(self, task_id: str, message: str, state: Dict = None) -> None:
        """发送完成消息."""
        self.publish(
            task_id,
            ProgressMessage(
                type=SSEMessageType.COMPLETE, progress=100, message=message, state=state
            ),
        )

    async def send_error(self, task_id: str, message: str) -> None:
        """发送错误消息."""
        self.publish(task_id, ProgressMessage(type=SSEMessageType.ERROR, message=message))

    async def send_file(self, task_id: str, filename: str, file_content: bytes) -> None:
        """发送文件内容."""
        # 将文件内容编码为base64
        encoded_content = base64.b64encode(file_content).decode("utf-8")
        self.publish(
            task_id,
            ProgressMessage(
                type=SSEMessageType.FILE, filename=filename, content=encoded_content
            ),
        )

    async def register_client(self, task_id: str) -> asyncio.Queue:
        """注册客户端连接."""
        queue = asyncio.Queue()
        self.clients[task_id] = queue
        return queue

    async def unregister_client(self, task_id: str) -> None:
        """注销客户端连接."""
        if task_id in self.clients:
            del self.clients[task_id]

    async def stream_messages(self, task_id: str) -> AsyncGenerator[str, None]:
        """流式传输消息，收到完成或错误消息后结束."""
        queue = self.clients.get(task_id) or await self.register_client(task_id)
        try:
            while True:
                message = await queue.get()
                yield message
                queue.task_done()
                if '"type": "complete"' in message or '"type": "error"' in message:
                    break
        finally:
            await self.unregister_client(task_id)


class SSERunObserver(RunObserver):
    """把运行回调转发为SSE消息."""

    def __init__(self, sse_manager: SSEManager, task_id: str):
        self.sse_manager = sse_manager
        self.task_id = task_id

    def on_progress(self, state: RunState, message: str) -> None:
        self.sse_manager.publish(
            self.task_id,
            ProgressMessage(
                type=SSEMessageType.PROGRESS,
                progress=state.progress_percent,
                message=message,
            ),
        )

    def on_log(self, message: str, level: int = logging.INFO) -> None:
        self.sse_manager.publish(
            self.task_id, ProgressMessage(type=SSEMessageType.LOG, message=message)
        )
