"""Localization Batch Translator API 路由."""

import os
import uuid
import tempfile
import asyncio
from typing import Callable, List, Optional
from fastapi import APIRouter, UploadFile, File, Form, HTTPException
from fastapi.responses import StreamingResponse

from .sse_manager import SSEManager, SSERunObserver
from .translation_service import TranslationService, to_entries, to_payloads
from config.settings import TranslationConfig, settings
from config.logging_config import get_logger
from models.models import (
    ModelInfo,
    RunControlResponse,
    StatsResponse,
    TranslateRequest,
)
from translator.entries import Entry, translation_progress
from translator.entry_store import EntryStore
from translator.exceptions import (
    ConfigurationInvalid,
    RunAlreadyActive,
    TransportFailure,
)

logger = get_logger(__name__)

# 创建路由实例
router = APIRouter(prefix="/api/v1/localization")

# 创建SSE管理器与翻译服务实例
sse_manager = SSEManager()
translation_service = TranslationService(settings)
entry_store = EntryStore()


def _prepare_or_raise(config: TranslationConfig, task_id: str):
    try:
        return translation_service.prepare(config, SSERunObserver(sse_manager, task_id))
    except ConfigurationInvalid as e:
        raise HTTPException(
            status_code=400, detail={"message": str(e), "code": e.code, **e.details}
        )
    except RunAlreadyActive as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/translate")
async def translate_entries(request: TranslateRequest):
    """
    翻译JSON条目并返回SSE流式响应

    SSE消息格式：
       - 进度消息：data: {"type": "progress", "progress": 50, "message": "Batch 5 complete: ..."}
       - 日志消息：data: {"type": "log", "message": "..."}
       - 结果消息：data: {"type": "result", "entries": [...], "state": {...}}
       - 完成消息：data: {"type": "complete", "message": "翻译完成"}
       - 错误消息：data: {"type": "error", "message": "错误详情"}
    """
    task_id = str(uuid.uuid4())
    entries = to_entries(request.entries)
    translation_service.restore_from_cache(entries)
    targets = translation_service.select_entries(
        entries, selected_only=request.selected_only, limit=request.limit
    )

    config = translation_service.build_config(request)
    _prepare_or_raise(config, task_id)
    await sse_manager.register_client(task_id)

    async def translation_task():
        try:
            state = await translation_service.execute(targets)
            await sse_manager.send_result(
                task_id, to_payloads(entries), state.to_dict()
            )
            await sse_manager.send_complete(
                task_id, f"翻译结束: {state.status.value}", state.to_dict()
            )
        except Exception as e:
            logger.exception(f"翻译失败: {str(e)}")
            await sse_manager.send_error(task_id, f"翻译失败: {str(e)}")

    asyncio.create_task(translation_task())
    return StreamingResponse(
        sse_manager.stream_messages(task_id), media_type="text/event-stream"
    )


@router.post("/translate/file")
async def translate_file(
    file: UploadFile = File(...),
    model: Optional[str] = Form(None),
    target_language: Optional[str] = Form(None),
    context: Optional[str] = Form(None),
    limit: Optional[int] = Form(None),
):
    """
    翻译两列(key, 原文)的Excel文件并返回SSE流式响应

    完成前会发送文件内容消息：data: {"type": "file", "filename": "xxx.xlsx", "content": "base64_encoded_content"}
    """
    task_id = str(uuid.uuid4())

    # 读取文件内容，避免文件句柄关闭问题
    file_content = await file.read()
    if len(file_content) > translation_service.settings.max_file_size:
        raise HTTPException(status_code=413, detail="文件过大")

    config = translation_service.settings.translation_config(
        model=model, target_language=target_language, context=context
    )
    _prepare_or_raise(config, task_id)
    await sse_manager.register_client(task_id)

    async def translation_task():
        tmp_file_path = None
        try:
            await sse_manager.send_progress(task_id, 0, "开始处理文件")

            tmp_file = tempfile.NamedTemporaryFile(delete=False, suffix=".xlsx")
            tmp_file.write(file_content)
            tmp_file_path = tmp_file.name
            tmp_file.close()

            entries = entry_store.read_entries(tmp_file_path)
            translation_service.restore_from_cache(entries)
            targets = translation_service.select_entries(entries, limit=limit)

            base_name = os.path.splitext(os.path.basename(file.filename or "entries"))[0]
            output_path = os.path.join(
                translation_service.settings.output_dir, f"{base_name}_translated.xlsx"
            )

            save_output = _saver(entries, output_path)
            state = await translation_service.execute(targets, save_output=save_output)

            # 没有新译文时输出目录保持不变，下载内容写入临时文件
            download_path = output_path
            if state.success_count == 0 or not os.path.exists(output_path):
                entry_store.write_entries(entries, tmp_file_path)
                download_path = tmp_file_path
            with open(download_path, "rb") as f:
                result_file_content = f.read()
            await sse_manager.send_file(
                task_id, os.path.basename(output_path), result_file_content
            )
            await sse_manager.send_complete(
                task_id, f"翻译结束: {state.status.value}", state.to_dict()
            )

        except Exception as e:
            translation_service.release()
            logger.exception(f"翻译失败: {str(e)}")
            await sse_manager.send_error(task_id, f"翻译失败: {str(e)}")

        finally:
            if tmp_file_path and os.path.exists(tmp_file_path):
                os.unlink(tmp_file_path)

    asyncio.create_task(translation_task())
    return StreamingResponse(
        sse_manager.stream_messages(task_id), media_type="text/event-stream"
    )


def _saver(all_entries: List[Entry], output_path: str) -> Callable[[List[Entry]], None]:
    """保存完整条目列表，而不只是本次翻译的子集."""

    def save(_: List[Entry]) -> None:
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
        entry_store.write_entries(all_entries, output_path)

    return save


@router.post("/run/pause", response_model=RunControlResponse)
async def pause_run():
    accepted = translation_service.pause()
    return RunControlResponse(accepted=accepted, status=translation_service.status())


@router.post("/run/resume", response_model=RunControlResponse)
async def resume_run():
    accepted = translation_service.resume()
    return RunControlResponse(accepted=accepted, status=translation_service.status())


@router.post("/run/cancel", response_model=RunControlResponse)
async def cancel_run():
    accepted = translation_service.cancel()
    return RunControlResponse(accepted=accepted, status=translation_service.status())


@router.get("/stats", response_model=StatsResponse)
async def get_stats():
    """缓存、累计用量与当前运行的统计."""
    usage = translation_service.usage()
    snapshot = translation_service.run_snapshot()
    return StatsResponse(
        cache_size=translation_service.cache.size(),
        usage={
            "api_calls": usage.api_calls,
            "cache_hits": usage.cache_hits,
            "input_chars": usage.input_chars,
            "output_chars": usage.output_chars,
            "total_cost": usage.total_cost,
        },
        run=snapshot.to_dict() if snapshot else None,
    )


@router.post("/stats/entries")
async def get_entry_stats(request: TranslateRequest):
    """统计给定条目的翻译进度(含缓存中已有的译文)."""
    entries = to_entries(request.entries)
    translation_service.restore_from_cache(entries)
    return translation_progress(entries)


@router.delete("/cache")
async def clear_cache():
    try:
        cleared = translation_service.clear_cache()
    except RunAlreadyActive as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"cleared": cleared, "cache_size": translation_service.cache.size()}


@router.get("/models", response_model=List[ModelInfo])
async def list_models(api_key: Optional[str] = None):
    """列出服务端可用的模型及估算的配额."""
    config = translation_service.settings.translation_config(api_key=api_key)
    try:
        return await translation_service.list_models(config)
    except ConfigurationInvalid as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransportFailure as e:
        raise HTTPException(status_code=502, detail=str(e))
