"""
Image Loader 测试配置文件

这个文件包含 pytest fixtures（测试夹具）。

关键概念：
- 每个测试都使用独立的存储（内存或临时 SQLite 文件），测试之间相互隔离
- FakeClock：可控的时钟，用来模拟"10 天前"的缓存条目
- FakeTransport：不访问网络的传输层，记录每一次请求
"""

import asyncio
import struct
import sys
import time
import zlib
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import pytest
from PIL import Image

# 添加项目根目录到 Python 路径
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

from image_loader import (
    ImageCacher,
    ImageFetchError,
    ImageLoader,
    MemoryImageCacheStorage,
    SQLiteImageCacheStorage,
)


# ============================================
# Helper Classes
# ============================================

class FakeClock:
    """可控时钟：返回固定的 Unix 时间，可以手动前进"""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """
    假的网络传输层。

    responses: URL -> 字节 或 异常；未登记的 URL 返回 404。
    """

    def __init__(self, responses: Optional[Dict[str, Union[bytes, Exception]]] = None):
        self.responses = responses or {}
        self.calls: List[str] = []
        self.closed = False

    async def fetch(self, url: str) -> bytes:
        self.calls.append(url)
        response = self.responses.get(url)
        if response is None:
            raise ImageFetchError("Failed to fetch image: 404", url, status_code=404)
        if isinstance(response, Exception):
            raise response
        return response

    async def aclose(self) -> None:
        self.closed = True


class SlowTransport(FakeTransport):
    """每次请求前先等待一段时间的传输层，用来模拟仍在进行中的下载"""

    def __init__(self, responses=None, delay: float = 0.3):
        super().__init__(responses)
        self.delay = delay

    async def fetch(self, url: str) -> bytes:
        await asyncio.sleep(self.delay)
        return await super().fetch(url)


class RecordingStorage(MemoryImageCacheStorage):
    """记录每一次存储调用的内存存储"""

    def __init__(self, clock=time.time):
        super().__init__(clock=clock)
        self.calls: List[Tuple[str, str]] = []

    def load_image(self, url):
        self.calls.append(("load_image", url))
        return super().load_image(url)

    def save_image(self, url, image_data):
        self.calls.append(("save_image", url))
        super().save_image(url, image_data)

    def delete_entities(self, older_than):
        self.calls.append(("delete_entities", str(older_than)))
        super().delete_entities(older_than)

    def writes(self) -> List[Tuple[str, str]]:
        return [c for c in self.calls if c[0] != "load_image"]


def make_png(size: Tuple[int, int] = (4, 3), color=(255, 0, 0)) -> bytes:
    """生成一张 PNG 图片的原始字节"""
    output = BytesIO()
    Image.new("RGB", size, color).save(output, format="PNG")
    return output.getvalue()


def make_oversized_png(width: int = 200000, height: int = 200000) -> bytes:
    """
    生成一个很小的 PNG，但 IHDR 声明的尺寸超过 Pillow 允许的像素上限。

    Pillow 打开时会抛出 DecompressionBombError。
    """
    def chunk(kind: bytes, data: bytes) -> bytes:
        return (
            struct.pack(">I", len(data)) + kind + data
            + struct.pack(">I", zlib.crc32(kind + data) & 0xFFFFFFFF)
        )

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", ihdr)
        + chunk(b"IDAT", zlib.compress(b"\x00"))
        + chunk(b"IEND", b"")
    )


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_storage(clock):
    return MemoryImageCacheStorage(clock=clock)


@pytest.fixture
def sqlite_storage(tmp_path, clock):
    """
    临时目录中的 SQLite 存储。

    测试结束后自动关闭连接和工作线程。
    """
    storage = SQLiteImageCacheStorage(tmp_path / "image-cache.sqlite", clock=clock)
    yield storage
    storage.close()


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path, clock):
    """两种存储实现都要满足同一个契约"""
    if request.param == "memory":
        yield MemoryImageCacheStorage(clock=clock)
        return

    storage = SQLiteImageCacheStorage(tmp_path / "image-cache.sqlite", clock=clock)
    yield storage
    storage.close()


@pytest.fixture
def recording_storage(clock):
    return RecordingStorage(clock=clock)


@pytest.fixture
def transport(png_bytes):
    return FakeTransport({"http://x/a.png": png_bytes})


@pytest.fixture
def loader(storage, transport):
    """使用参数化存储和假传输层的 ImageLoader"""
    loader = ImageLoader(cacher=ImageCacher(storage), transport=transport)
    yield loader
    loader.close()
