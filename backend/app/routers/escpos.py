from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ..errors import UpstreamUnreachable
from ..logs import json_log
from ..printer import PrinterService, ProxiedResponse, get_printer

router = APIRouter(prefix="/api/escpos", tags=["escpos"])

SAMPLE_CHARS = 200


def _relay(res: ProxiedResponse, default_content_type: str) -> Response:
    return Response(
        content=res.body,
        status_code=res.status,
        headers={"Content-Type": res.content_type or default_content_type},
    )


def _proxy_error(printer: PrinterService, path: str, exc: UpstreamUnreachable) -> JSONResponse:
    json_log("error", exc.tag, base=printer.base_url, path=path, error=exc.detail or exc.message)
    return JSONResponse(status_code=502, content={"success": False, "error": exc.message})


@router.get("/health")
def health(printer: PrinterService = Depends(get_printer)):
    try:
        res = printer.check_health()
    except UpstreamUnreachable as exc:
        json_log("warning", exc.tag, base=printer.base_url, error=exc.detail or exc.message)
        return JSONResponse(
            status_code=502,
            content={"ok": False, "reachable": False, "base": printer.base_url, "error": exc.message},
        )
    text = res.body.decode("utf-8", errors="replace")
    return {
        "ok": True,
        "reachable": True,
        "base": printer.base_url,
        "status": res.status,
        "status_text": res.reason,
        "sample": text[:SAMPLE_CHARS],
    }


@router.get("/impresoras")
def list_printers(printer: PrinterService = Depends(get_printer)):
    try:
        res = printer.forward("GET", "/impresoras")
    except UpstreamUnreachable as exc:
        return _proxy_error(printer, "/impresoras", exc)
    return _relay(res, "application/json")


@router.put("/impresora_silencioso")
async def select_silent_printer(request: Request, printer: PrinterService = Depends(get_printer)):
    body = await request.body()
    content_type = request.headers.get("content-type") or "text/plain"
    try:
        # urllib blocks; keep it off the event loop.
        res = await run_in_threadpool(
            printer.forward, "PUT", "/impresora_silencioso", body=body, content_type=content_type
        )
    except UpstreamUnreachable as exc:
        return _proxy_error(printer, "/impresora_silencioso", exc)
    return _relay(res, "text/plain")
