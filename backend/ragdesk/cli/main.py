"""CLI entrypoint for ragdesk."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

import requests
import typer

app = typer.Typer(name="ragdesk", help="ragdesk command-line interface")
resources_app = typer.Typer(name="resources")
app.add_typer(resources_app, name="resources")

DEFAULT_HOST = "http://127.0.0.1:8000"
STATUSES = ("processing", "ready", "error", "archived")


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("RAGDESK_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=120, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


@app.command()
def upload(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="PDF file to upload"),
    title: Optional[str] = typer.Option(None, "--title", help="Override the extracted title"),
    lang: str = typer.Option("en", "--lang", help="Language tag stored on the chunks"),
    user: Optional[str] = typer.Option(None, "--user", help="Uploader identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Upload a PDF and wait for it to be ingested."""
    form: dict[str, str] = {"lang": lang}
    if title:
        form["title"] = title
    if user:
        form["created_by"] = user
    headers = {"X-User-Id": user} if user else {}
    with path.expanduser().open("rb") as handle:
        files = {"file": (path.name, handle, "application/pdf")}
        resp = _request("POST", "/upload/pdf", host=host, files=files, data=form, headers=headers)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def status(
    resource_id: str = typer.Argument(..., help="Resource identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show ingest progress for a resource."""
    resp = _request("GET", f"/upload/pdf/{resource_id}", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def delete(
    resource_id: str = typer.Argument(..., help="Resource identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Delete a resource, its chunks and the stored PDF."""
    resp = _request("DELETE", f"/upload/pdf/{resource_id}", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def query(
    q: str = typer.Argument(..., help="Query text"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Find chunks relevant to a question."""
    resp = _request("POST", "/query", host=host, json={"query": q})
    typer.echo(json.dumps(resp.json(), indent=2))


@resources_app.command("list")
def list_resources(
    page: int = typer.Option(1, "--page", min=1),
    limit: int = typer.Option(20, "--limit", min=1, max=100),
    stats: bool = typer.Option(False, "--stats", help="Include index statistics"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """List ingested resources."""
    params = {"page": page, "limit": limit, "include_stats": str(stats).lower()}
    resp = _request("GET", "/resources", host=host, params=params)
    typer.echo(json.dumps(resp.json(), indent=2))


@resources_app.command("set-status")
def set_status(
    resource_id: str = typer.Argument(..., help="Resource identifier"),
    new_status: str = typer.Argument(..., help="One of: " + ", ".join(STATUSES)),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Change the status of a resource."""
    if new_status not in STATUSES:
        typer.echo(f"Unknown status {new_status!r}", err=True)
        raise typer.Exit(code=2)
    resp = _request("PATCH", f"/resources/{resource_id}", host=host, json={"status": new_status})
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def serve(
    bind_host: str = typer.Option("127.0.0.1", "--bind", help="Interface to listen on"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
) -> None:
    """Run the ragdesk API server."""
    import uvicorn

    uvicorn.run("ragdesk.app:app", host=bind_host, port=port, reload=reload)


if __name__ == "__main__":
    app()
