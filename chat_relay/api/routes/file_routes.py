"""
Маршруты для загрузки и получения файловых вложений
"""
import os
import time
import uuid

import aiofiles
from fastapi import APIRouter, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse

from chat_relay.core.config import settings
from chat_relay.core.logging import get_logger
from chat_relay.core.performance import async_time_it
from chat_relay.schemas.message import UploadedFile

# Маршрутизатор API загрузки
router = APIRouter(prefix=settings.API_PREFIX, tags=["files"])

# Маршрутизатор раздачи загруженных файлов (вне префикса API)
media_router = APIRouter(prefix=settings.MEDIA_URL, tags=["files"])

# Получение логгера
logger = get_logger("file_routes")

CHUNK_SIZE = 64 * 1024


@router.post(
    "/upload",
    response_model=UploadedFile,
    summary="Загрузка файла",
    description="""
    Загружает один файл (изображение, аудио, документ) и возвращает ссылку на него,
    которую клиент кладет в поле image или file сообщения.

    - Ограничивает размер файла
    - Создает уникальное имя файла
    """
)
@async_time_it
async def upload_file(file: UploadFile = File(...)):
    """Загрузка файла вложения"""
    os.makedirs(settings.MEDIA_ROOT, exist_ok=True)

    original_filename = file.filename or ""
    extension = os.path.splitext(original_filename)[1]
    unique_filename = f"{int(time.time() * 1000)}-{uuid.uuid4().hex}{extension}"
    file_path = os.path.join(settings.MEDIA_ROOT, unique_filename)
    max_size = settings.MAX_FILE_SIZE_MB * 1024 * 1024

    # Сохраняем файл по частям, прерывая загрузку при превышении размера
    file_size = 0
    async with aiofiles.open(file_path, "wb") as out_file:
        chunk = await file.read(CHUNK_SIZE)
        while chunk:
            file_size += len(chunk)
            if file_size > max_size:
                break
            await out_file.write(chunk)
            chunk = await file.read(CHUNK_SIZE)

    if file_size > max_size:
        os.remove(file_path)
        logger.warning(f"Отклонен файл {original_filename}: больше {settings.MAX_FILE_SIZE_MB} МБ")
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Размер файла превышает максимально допустимый ({settings.MAX_FILE_SIZE_MB} МБ)"
        )

    logger.info(f"Загружен файл {unique_filename} ({file_size} байт)")
    return UploadedFile(
        url=f"{settings.MEDIA_URL}/{unique_filename}",
        filename=original_filename or unique_filename,
        size=file_size,
        mime_type=file.content_type,
    )


@media_router.get("/{filename}", summary="Получение загруженного файла")
async def get_file(filename: str):
    """Отдает ранее загруженный файл"""
    safe_name = os.path.basename(filename)
    file_path = os.path.join(settings.MEDIA_ROOT, safe_name)

    if safe_name != filename or not os.path.isfile(file_path):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Файл не найден"
        )

    return FileResponse(
        path=file_path,
        filename=safe_name,
        headers={"Cache-Control": "public, max-age=604800"}
    )
