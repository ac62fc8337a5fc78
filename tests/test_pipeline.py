from __future__ import annotations

import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from aiohttp import web
from aiohttp.test_utils import TestServer

from ghost_static import pipeline, verify
from ghost_static.config import Config
from ghost_static.context import SnapshotContext, StageReport
from ghost_static.fetch import StageError

ERROR_PAGE = """<!DOCTYPE html>
<html><head><link rel="stylesheet" href="{origin}/assets/built/screen.css?v=1"></head>
<body><div class="gh-subscribe">Subscribe</div>
<img src="{origin}/content/images/a.png?v=2" srcset="/content/images/a.png 600w, /content/images/b.png?v=2 1000w">
<a href="{origin}/about/">About</a></body></html>
"""

SITEMAP = """<?xml version="1.0" encoding="UTF-8"?><?xml-stylesheet type="text/xsl" href="//{host}/sitemap.xsl"?>
<urlset><url><loc>{origin}/about/</loc></url></urlset>
"""


def make_site() -> web.Application:
    async def error_page(request: web.Request) -> web.Response:
        origin = f"http://{request.host}"
        return web.Response(status=404, text=ERROR_PAGE.format(origin=origin), content_type="text/html")

    async def sitemap(request: web.Request) -> web.Response:
        return web.Response(text=SITEMAP.format(origin=f"http://{request.host}", host=request.host), content_type="application/xml")

    async def image(request: web.Request) -> web.Response:
        return web.Response(body=b"png:" + request.match_info["name"].encode(), content_type="image/png")

    app = web.Application()
    app.router.add_get("/404/", error_page)
    app.router.add_get("/sitemap.xml", sitemap)
    app.router.add_get("/content/images/{name}", image)
    return app


class RunStagesTest(unittest.IsolatedAsyncioTestCase):
    async def test_runs_in_order_and_awaits_coroutines(self) -> None:
        calls: list[str] = []

        def first(ctx: SnapshotContext) -> StageReport:
            calls.append("first")
            return StageReport("first", {"n": 1})

        async def second(ctx: SnapshotContext) -> StageReport:
            calls.append("second")
            return StageReport("second")

        ctx = SnapshotContext(Config(deploy_url="https://blog.example.com"))
        reports = await pipeline.run_stages(ctx, [first, second])
        self.assertEqual(calls, ["first", "second"])
        self.assertEqual([r.name for r in reports], ["first", "second"])

    async def test_fatal_stage_stops_the_run(self) -> None:
        calls: list[str] = []

        def failing(ctx: SnapshotContext) -> StageReport:
            raise StageError("boom")

        def never(ctx: SnapshotContext) -> StageReport:
            calls.append("never")
            return StageReport("never")

        with tempfile.TemporaryDirectory() as tmp:
            config = Config(deploy_url="https://blog.example.com", output_dir=tmp)
            with self.assertLogs(level="ERROR"):
                code = await pipeline.run(config, [failing, never])
        self.assertEqual(code, 1)
        self.assertEqual(calls, [])


class EndToEndTest(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name) / "dist"
        self.server = TestServer(make_site())
        await self.server.start_server()
        self.origin = str(self.server.make_url("/")).rstrip("/")

    async def asyncTearDown(self) -> None:
        await self.server.close()
        self._tmp.cleanup()

    async def test_full_build(self) -> None:
        config = Config(
            source_url=self.origin,
            deploy_url="https://blog.example.com",
            output_dir=str(self.root),
            # Any failing executable stands in for an unavailable wget.
            wget=sys.executable,
            extra_paths=["rss/", "sitemap.xml", "sitemap-posts.xml"],
            remove_selectors=[".gh-subscribe", "div["],
            publish_command=[sys.executable, "-c", "pass"],
        )
        code = await pipeline.run(config)
        self.assertEqual(code, 0)

        error_page = (self.root / "404.html").read_text(encoding="utf-8")
        self.assertFalse((self.root / "404").exists())
        self.assertNotIn("gh-subscribe", error_page)
        self.assertIn('href="https://blog.example.com/assets/built/screen.css"', error_page)
        self.assertEqual((self.root / "content/images/a.png").read_bytes(), b"png:a.png")
        self.assertEqual((self.root / "content/images/b.png").read_bytes(), b"png:b.png")
        self.assertNotIn("xml-stylesheet", (self.root / "sitemap.xml").read_text(encoding="utf-8"))
        self.assertFalse((self.root / "rss/index.html").exists())
        self.assertEqual((self.root / "CNAME").read_text(encoding="utf-8"), "blog.example.com")

        with mock.patch("builtins.print"):
            self.assertEqual(verify.main(["--output-dir", str(self.root), "--source-url", self.origin]), 0)


class MainTest(unittest.TestCase):
    def test_missing_deploy_url_exits_before_any_stage(self) -> None:
        with tempfile.TemporaryDirectory() as tmp, mock.patch.dict(os.environ, {}, clear=True), mock.patch.object(
            pipeline, "load_dotenv"
        ), mock.patch.object(pipeline, "run") as run:
            with self.assertRaises(SystemExit) as caught:
                pipeline.main(["--output-dir", tmp])
        self.assertEqual(caught.exception.code, 1)
        run.assert_not_called()


if __name__ == "__main__":
    unittest.main()
