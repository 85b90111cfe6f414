"""
contribround/api.py

REST API server for contribround.

Exposes the engine operations as JSON endpoints. Callers are identified by
the X-Caller header, which an authenticating proxy in front of this server
is expected to set.
"""

import json
import logging
import time
import trio
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlparse

from . import __version__
from .config import CALLER_HEADER, DEFAULT_API_HOST, DEFAULT_API_PORT
from .errors import ContribRoundError
from .metrics import MetricsCollector
from .protocol.types import Vote, VoteSign

if TYPE_CHECKING:
    from .engine import ContributionEngine

logger = logging.getLogger("contribround.api")

# Engine error category -> HTTP status
ERROR_STATUS = {
    "authorization": 403,
    "state": 409,
    "validation": 400,
    "resource": 402,
    "collaborator": 502,
}


class BadRequest(Exception):
    """Malformed request body or parameters."""
    pass


@dataclass
class Request:
    """HTTP request representation."""
    method: str
    path: str
    query: Dict[str, List[str]]
    headers: Dict[str, str]
    body: bytes
    path_params: Dict[str, str] = field(default_factory=dict)

    @property
    def caller(self) -> Optional[str]:
        return self.headers.get(CALLER_HEADER) or None

    def json(self) -> Dict[str, Any]:
        if not self.body:
            raise BadRequest("Request body required")
        try:
            data = json.loads(self.body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise BadRequest("Invalid JSON")
        if not isinstance(data, dict):
            raise BadRequest("JSON object expected")
        return data


@dataclass
class Response:
    """HTTP response representation."""
    status: int
    headers: Dict[str, str]
    body: bytes

    @classmethod
    def json(cls, data: Any, status: int = 200) -> "Response":
        """Create JSON response."""
        body = json.dumps(data, indent=2).encode("utf-8")
        return cls(
            status=status,
            headers={"Content-Type": "application/json"},
            body=body,
        )

    @classmethod
    def text(cls, text: str, status: int = 200, content_type: str = "text/plain") -> "Response":
        """Create text response."""
        return cls(
            status=status,
            headers={"Content-Type": content_type},
            body=text.encode("utf-8"),
        )

    @classmethod
    def error(cls, message: str, status: int = 400) -> "Response":
        """Create error response."""
        return cls.json({"error": message}, status=status)


def _require_field(data: Dict[str, Any], name: str, kind: type) -> Any:
    value = data.get(name)
    if value is None:
        raise BadRequest(f"{name} is required")
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise BadRequest(f"{name} must be {kind.__name__}")
    return value


class EngineAPI:
    """
    REST API server for a ContributionEngine.

    Usage:
        from contribround import ContributionEngine
        from contribround.api import EngineAPI

        engine = ContributionEngine(admin="root")
        api = EngineAPI(engine, host="0.0.0.0", port=8640)
        trio.run(api.start)
    """

    def __init__(
        self,
        engine: "ContributionEngine",
        host: str = DEFAULT_API_HOST,
        port: int = DEFAULT_API_PORT,
        enable_metrics: bool = True,
    ):
        """
        Initialize REST API server.

        Args:
            engine: Engine to expose via API
            host: Host to bind to (default: localhost)
            port: Port to listen on
            enable_metrics: Enable Prometheus metrics endpoint
        """
        self.engine = engine
        self.host = host
        self.port = port
        self.enable_metrics = enable_metrics

        # Initialize metrics collector
        self.metrics = MetricsCollector(engine) if enable_metrics else None

        # Server state
        self._running = False
        self._start_time = time.time()

        # Route handlers
        self._routes: Dict[Tuple[str, str], Callable] = {
            ("GET", "/"): self._handle_root,
            ("GET", "/health"): self._handle_health,
            ("GET", "/status"): self._handle_status,
            ("GET", "/rounds"): self._handle_list_rounds,
            ("GET", "/rounds/current"): self._handle_current_round,
            ("GET", "/rounds/{round_id}"): self._handle_get_round,
            ("POST", "/rounds"): self._handle_open_round,
            ("POST", "/rounds/close"): self._handle_close_round,
            ("POST", "/votes"): self._handle_vote,
            ("GET", "/contributors"): self._handle_list_contributors,
            ("POST", "/contributors"): self._handle_add_contributor,
            ("DELETE", "/contributors/{account}"): self._handle_remove_contributor,
            ("GET", "/admins"): self._handle_list_admins,
            ("POST", "/admins"): self._handle_add_admin,
            ("DELETE", "/admins/{account}"): self._handle_remove_admin,
            ("GET", "/reputation/{account}"): self._handle_reputation,
            ("GET", "/metrics"): self._handle_metrics,
        }

    async def start(self) -> None:
        """Start the API server."""
        if self._running:
            logger.warning("API server already running")
            return

        self._running = True
        logger.info(f"Starting REST API server on {self.host}:{self.port}")

        try:
            await trio.serve_tcp(
                self._handle_connection,
                self.port,
                host=self.host,
            )
        except OSError as e:
            logger.error(f"API server error: {e}")
            self._running = False
            raise

    async def stop(self) -> None:
        """Stop the API server."""
        self._running = False
        logger.info("REST API server stopped")

    async def _handle_connection(self, stream: trio.SocketStream) -> None:
        """Handle incoming TCP connection."""
        try:
            request = await self._read_request(stream)
            if not request:
                return

            response = await self._route_request(request)
            await self._send_response(stream, response)

        except trio.BrokenResourceError as e:
            logger.debug(f"Connection closed by client: {e}")
        except Exception as e:
            logger.error(f"Connection error: {e}")
            try:
                await self._send_response(stream, Response.error(str(e), status=500))
            except trio.BrokenResourceError:
                logger.debug("Client gone before error response was sent")
        finally:
            await stream.aclose()

    async def _read_request(self, stream: trio.SocketStream) -> Optional[Request]:
        """Read and parse HTTP request."""
        data = b""
        while b"\r\n\r\n" not in data:
            chunk = await stream.receive_some(4096)
            if not chunk:
                return None
            data += chunk

        header_end = data.index(b"\r\n\r\n")
        try:
            header_data = data[:header_end].decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Dropping request with non UTF-8 headers")
            return None
        body = data[header_end + 4:]

        lines = header_data.split("\r\n")
        request_line = lines[0].split(" ")
        method = request_line[0]
        path_with_query = request_line[1] if len(request_line) > 1 else "/"

        parsed = urlparse(path_with_query)

        headers = {}
        for line in lines[1:]:
            if ":" in line:
                key, value = line.split(":", 1)
                headers[key.strip().lower()] = value.strip()

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            content_length = 0
        while len(body) < content_length:
            chunk = await stream.receive_some(4096)
            if not chunk:
                break
            body += chunk

        return Request(
            method=method,
            path=parsed.path,
            query=parse_qs(parsed.query),
            headers=headers,
            body=body[:content_length] if content_length else body,
        )

    async def _send_response(self, stream: trio.SocketStream, response: Response) -> None:
        """Send HTTP response."""
        status_text = {
            200: "OK",
            201: "Created",
            400: "Bad Request",
            401: "Unauthorized",
            402: "Payment Required",
            403: "Forbidden",
            404: "Not Found",
            409: "Conflict",
            500: "Internal Server Error",
            502: "Bad Gateway",
        }.get(response.status, "Unknown")

        lines = [f"HTTP/1.1 {response.status} {status_text}"]

        response.headers["Content-Length"] = str(len(response.body))
        response.headers["Connection"] = "close"
        response.headers["Server"] = f"contribround/{__version__}"

        for key, value in response.headers.items():
            lines.append(f"{key}: {value}")

        lines.append("")
        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"

        await stream.send_all(header_bytes + response.body)

    async def _route_request(self, request: Request) -> Response:
        """Route request to its handler and map engine errors to responses."""
        handler = self._routes.get((request.method, request.path))

        if handler is None:
            for (method, pattern), candidate in self._routes.items():
                if method != request.method:
                    continue
                match, params = self._match_path(pattern, request.path)
                if match:
                    request.path_params = params
                    handler = candidate
                    break

        if handler is None:
            return Response.error("Not Found", status=404)

        try:
            return await handler(request)
        except ContribRoundError as e:
            logger.warning(f"{request.method} {request.path} rejected: {e}")
            return Response.json(e.to_dict(), status=ERROR_STATUS.get(e.category, 400))
        except BadRequest as e:
            return Response.error(str(e), status=400)
        except Exception as e:
            logger.error(f"{request.method} {request.path} failed: {e}")
            return Response.error(f"Internal error: {e}", status=500)

    def _match_path(self, pattern: str, path: str) -> Tuple[bool, Dict[str, str]]:
        """Match path against pattern with parameters."""
        pattern_parts = pattern.split("/")
        path_parts = path.split("/")

        if len(pattern_parts) != len(path_parts):
            return False, {}

        params = {}
        for p_part, path_part in zip(pattern_parts, path_parts):
            if p_part.startswith("{") and p_part.endswith("}"):
                params[p_part[1:-1]] = path_part
            elif p_part != path_part:
                return False, {}

        return True, params

    def _caller(self, request: Request) -> str:
        caller = request.caller
        if not caller:
            raise BadRequest(f"{CALLER_HEADER} header is required")
        return caller

    # ========== Route Handlers ==========

    async def _handle_root(self, request: Request) -> Response:
        """Handle root endpoint."""
        return Response.json({
            "name": "contribround",
            "version": __version__,
            "endpoints": list(f"{m} {p}" for (m, p) in self._routes.keys()),
        })

    async def _handle_health(self, request: Request) -> Response:
        """Handle health check."""
        return Response.json({
            "status": "healthy",
            "running": self._running,
            "uptime_seconds": time.time() - self._start_time,
        })

    async def _handle_status(self, request: Request) -> Response:
        """Handle status endpoint."""
        return Response.json(self.engine.get_status())

    async def _handle_list_rounds(self, request: Request) -> Response:
        rounds = [
            {"round_id": round_id, **round_.to_dict()}
            for round_id, round_ in self.engine.rounds.list_rounds()
        ]
        return Response.json({"count": len(rounds), "rounds": rounds})

    async def _handle_current_round(self, request: Request) -> Response:
        round_id = self.engine.current_round_id()
        current = self.engine.get_round(round_id) if round_id else None
        if current is None:
            return Response.error("No round has been opened", status=404)
        return Response.json({"round_id": round_id, **current.to_dict()})

    async def _handle_get_round(self, request: Request) -> Response:
        try:
            round_id = int(request.path_params.get("round_id", ""))
        except ValueError:
            raise BadRequest("round_id must be an integer")

        round_ = self.engine.get_round(round_id)
        if round_ is None:
            return Response.error(f"Round {round_id} not found", status=404)
        return Response.json({"round_id": round_id, **round_.to_dict()})

    async def _handle_open_round(self, request: Request) -> Response:
        caller = self._caller(request)
        body = request.json()

        round_id = self.engine.open_round(
            caller,
            name=_require_field(body, "name", str),
            value=_require_field(body, "value", int),
            max_votes=_require_field(body, "max_votes", int),
            finish_at=_require_field(body, "finish_at", int),
        )
        return Response.json({"success": True, "round_id": round_id}, status=201)

    async def _handle_close_round(self, request: Request) -> Response:
        caller = self._caller(request)
        report = self.engine.close_round(caller)
        return Response.json({"success": True, "settlement": report.to_dict()})

    async def _handle_vote(self, request: Request) -> Response:
        caller = self._caller(request)
        body = request.json()

        receiver = _require_field(body, "receiver", str)
        try:
            sign = VoteSign(body.get("sign", VoteSign.POSITIVE.value))
        except ValueError:
            raise BadRequest("sign must be 'positive' or 'negative'")
        value = _require_field(body, "value", int)

        receipt = self.engine.submit_vote(caller, receiver, Vote(sign, value))
        return Response.json({"success": True, "receipt": receipt.to_dict()}, status=201)

    async def _handle_list_contributors(self, request: Request) -> Response:
        contributors = self.engine.list_contributors()
        return Response.json({"count": len(contributors), "contributors": contributors})

    async def _handle_add_contributor(self, request: Request) -> Response:
        caller = self._caller(request)
        account = _require_field(request.json(), "account", str)
        self.engine.add_contributor(caller, account)
        return Response.json({"success": True, "account": account}, status=201)

    async def _handle_remove_contributor(self, request: Request) -> Response:
        caller = self._caller(request)
        account = request.path_params.get("account", "")
        self.engine.remove_contributor(caller, account)
        return Response.json({"success": True, "account": account})

    async def _handle_list_admins(self, request: Request) -> Response:
        admins = self.engine.list_admins()
        return Response.json({"count": len(admins), "admins": admins})

    async def _handle_add_admin(self, request: Request) -> Response:
        caller = self._caller(request)
        account = _require_field(request.json(), "account", str)
        self.engine.add_admin(caller, account)
        return Response.json({"success": True, "account": account}, status=201)

    async def _handle_remove_admin(self, request: Request) -> Response:
        caller = self._caller(request)
        account = request.path_params.get("account", "")
        self.engine.remove_admin(caller, account)
        return Response.json({"success": True, "account": account})

    async def _handle_reputation(self, request: Request) -> Response:
        caller = self._caller(request)
        account = request.path_params.get("account", "")
        reputation = self.engine.get_reputation(caller, account)
        return Response.json({
            "account": account,
            "round_id": self.engine.current_round_id(),
            "reputation": reputation,
        })

    async def _handle_metrics(self, request: Request) -> Response:
        """Handle Prometheus metrics endpoint."""
        if not self.metrics:
            return Response.error("Metrics not enabled", status=404)

        return Response.text(
            self.metrics.collect(),
            content_type="text/plain; version=0.0.4; charset=utf-8",
        )
