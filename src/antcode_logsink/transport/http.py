"""
HTTP 传输

基于 httpx 的批量提交实现。请求体：

    {"stream": "...", "records": [{"data": "...", "partition_key": "..."}]}

响应体沿用 Kinesis PutRecords 的形状（字段均可省略，省略即全部接收）：

    {"failed_record_count": 1, "records": [{"error_code": null}, {"error_code": "Throttled"}]}
"""

import json
import random
import uuid
from collections.abc import Sequence

import httpx
from loguru import logger

from antcode_logsink.config import SinkOptions
from antcode_logsink.domain.models import SubmitOutcome
from antcode_logsink.transport.base import TransportBase


class HttpTransport(TransportBase):
    """
    HTTP 传输

    httpx.AsyncClient 在首次提交时创建，因此绑定到发送器自己的事件循环，
    并在发送器关闭时一并释放。
    """

    REQUEST_TIMEOUT = 30.0
    CONNECT_TIMEOUT = 5.0

    def __init__(
        self,
        endpoint: str,
        headers: dict[str, str] | None = None,
        timeout: float = REQUEST_TIMEOUT,
        shard_count: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        初始化 HTTP 传输

        Args:
            endpoint: 接收端 URL
            headers: 额外请求头（如 Authorization）
            timeout: 请求超时（秒）
            shard_count: 分片数提示，设置后分区键取 0..shard_count-1
            transport: 自定义 httpx 传输（测试时注入 MockTransport）
        """
        self._endpoint = endpoint
        self._headers = headers or {}
        self._timeout = timeout
        self._shard_count = shard_count
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        # 统计
        self._requests = 0
        self._failures = 0

    @classmethod
    def from_options(
        cls,
        endpoint: str,
        options: SinkOptions,
        headers: dict[str, str] | None = None,
        **kwargs,
    ) -> "HttpTransport":
        """按 Sink 配置创建（超时与分片数取自配置）"""
        return cls(
            endpoint,
            headers=headers,
            timeout=options.send_timeout,
            shard_count=options.shard_count,
            **kwargs,
        )

    @property
    def protocol_name(self) -> str:
        return "http"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=self.CONNECT_TIMEOUT),
                headers=self._headers,
                transport=self._transport,
                trust_env=False,
            )
        return self._client

    def _partition_key(self) -> str:
        if self._shard_count:
            return str(random.randrange(self._shard_count))
        return uuid.uuid4().hex

    async def submit(self, stream: str, records: Sequence[str]) -> SubmitOutcome:
        """提交一批记录"""
        payload = {
            "stream": stream,
            "records": [
                {"data": record, "partition_key": self._partition_key()} for record in records
            ],
        }

        self._requests += 1
        try:
            # ASCII 转义，记录中的孤立代理字符不会导致编码失败
            response = await self._get_client().post(
                self._endpoint,
                content=json.dumps(payload).encode("ascii"),
                headers={"Content-Type": "application/json"},
            )
        except httpx.TimeoutException:
            self._failures += 1
            return SubmitOutcome.failed("请求超时")
        except httpx.HTTPError as e:
            self._failures += 1
            return SubmitOutcome.failed(f"请求失败: {e}")

        if response.status_code >= 300:
            self._failures += 1
            return SubmitOutcome.failed(f"HTTP {response.status_code}: {response.text[:200]}")

        return self._parse_response(response, len(records))

    def _parse_response(self, response: httpx.Response, total: int) -> SubmitOutcome:
        if not response.content:
            return SubmitOutcome.accepted()

        try:
            body = response.json()
        except ValueError:
            logger.debug(f"接收端返回非 JSON 响应，按全部接收处理: {response.text[:200]}")
            return SubmitOutcome.accepted()

        if not isinstance(body, dict):
            return SubmitOutcome.accepted()

        results = body.get("records") or []
        failed_count = int(body.get("failed_record_count") or 0)
        if not failed_count and not any(
            isinstance(item, dict) and item.get("error_code") for item in results
        ):
            return SubmitOutcome.accepted()

        rejected = [
            index
            for index, item in enumerate(results[:total])
            if isinstance(item, dict) and item.get("error_code")
        ]
        if not rejected:
            # 只给出了失败条数而没有明细，无法判断哪些被接收
            return SubmitOutcome.failed(f"{failed_count} 条记录被拒绝")

        first = results[rejected[0]]
        reason = f"{first.get('error_code')}: {first.get('error_message') or ''}".rstrip(": ")
        return SubmitOutcome.partial(rejected, reason=reason)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def get_stats(self) -> dict:
        return {
            "protocol": self.protocol_name,
            "endpoint": self._endpoint,
            "requests": self._requests,
            "failures": self._failures,
        }
