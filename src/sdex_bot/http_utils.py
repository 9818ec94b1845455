from __future__ import annotations

import json
import os
import ssl
from functools import lru_cache
from urllib.request import Request, urlopen

import certifi

USER_AGENT = "sdex-bot/0.1"


def _resolve_ca_bundle() -> tuple[str | None, str | None]:
    env_cafile = os.getenv("SSL_CERT_FILE")
    if env_cafile:
        return env_cafile, None

    env_capath = os.getenv("SSL_CERT_DIR")
    if env_capath:
        return None, env_capath

    return certifi.where(), None


@lru_cache(maxsize=1)
def _ssl_context() -> ssl.SSLContext:
    cafile, capath = _resolve_ca_bundle()
    if capath:
        return ssl.create_default_context(capath=capath)
    return ssl.create_default_context(cafile=cafile)


def websocket_sslopt() -> dict[str, object]:
    cafile, capath = _resolve_ca_bundle()
    sslopt: dict[str, object] = {
        "cert_reqs": ssl.CERT_REQUIRED,
        "check_hostname": True,
    }
    if cafile:
        sslopt["ca_certs"] = cafile
    if capath:
        sslopt["ca_cert_path"] = capath
    return sslopt


def get_json(url: str, timeout: float = 10.0):
    request = Request(url, headers={"User-Agent": USER_AGENT, "Accept": "application/json"})
    with urlopen(request, timeout=timeout, context=_ssl_context()) as response:
        return json.load(response)
