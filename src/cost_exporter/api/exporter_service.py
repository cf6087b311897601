#!/usr/bin/env python3
"""
Cost Exporter Service - FastAPI app
Serves Prometheus cost gauges and a health check while a background task
keeps the gauges refreshed.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse

from .. import __version__
from ..config.settings import ExporterConfig, get_config
from ..export.prometheus import CONTENT_TYPE_LATEST, render_metrics
from ..monitoring.exporter import CostExporter
from ..providers.base import CostDataFetcher
from .models import GaugeInfo, ServiceInfo

logger = logging.getLogger(__name__)


def create_app(
    config: ExporterConfig | None = None, fetcher: CostDataFetcher | None = None
) -> FastAPI:
    """
    Create the exporter app.

    The exporter is built during startup, so configuration and the billing
    client are only resolved when the app is actually served.

    Args:
        config: Exporter configuration (default: global configuration)
        fetcher: Billing source override, mainly for tests
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan management"""
        logger.info("Starting AWS Cost Exporter...")
        exporter = CostExporter.from_config(config or get_config(), fetcher=fetcher)
        app.state.exporter = exporter

        await exporter.scheduler.start()
        logger.info("AWS Cost Exporter started")
        yield

        logger.info("Shutting down AWS Cost Exporter...")
        await exporter.scheduler.shutdown()

    app = FastAPI(
        title="AWS Cost Exporter",
        version=__version__,
        description="Prometheus exporter for AWS Cost Explorer billing windows",
        lifespan=lifespan,
    )

    @app.get("/metrics")
    async def metrics(request: Request):
        """Prometheus scrape endpoint"""
        exporter: CostExporter = request.app.state.exporter
        return Response(content=render_metrics(exporter.registry), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health", response_class=PlainTextResponse)
    async def health():
        """Liveness check, independent of refresh outcomes"""
        return "OK"

    @app.get("/", response_model=ServiceInfo)
    async def root(request: Request):
        """Service information"""
        exporter: CostExporter = request.app.state.exporter
        gauges = []
        for kind, gauge in exporter.gauges.items():
            last_updated = gauge.last_updated
            gauges.append(
                GaugeInfo(
                    window=kind.value,
                    name=gauge.name,
                    series=len(gauge),
                    last_updated=datetime.fromtimestamp(last_updated) if last_updated else None,
                )
            )
        return ServiceInfo(
            service="aws-cost-exporter",
            version=__version__,
            refresh_interval_seconds=exporter.interval_seconds,
            gauges=gauges,
        )

    return app
