"""
Execution trace logger - saves each finished execution trace as a separate JSON file.
"""

import hashlib
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .trace import ExecutionTrace

logger = logging.getLogger(__name__)


class TraceLogger:
    """
    Writes execution traces to ``<log_dir>/<component>/<timestamp>_<status>_<hash>.json``.
    """

    def __init__(self, log_dir: Union[str, Path] = "trace_logs"):
        """
        Args:
            log_dir: Directory to save trace files
        """
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.component_dirs: Dict[str, Path] = {}

    def _get_component_dir(self, component: str) -> Path:
        if component not in self.component_dirs:
            component_dir = self.log_dir / component
            component_dir.mkdir(exist_ok=True)
            self.component_dirs[component] = component_dir
        return self.component_dirs[component]

    def log_trace(self, trace: ExecutionTrace, component: str = "engine",
                  metadata: Optional[Dict[str, Any]] = None) -> str:
        """
        Write one trace.

        Args:
            trace: A finished (or in-progress) execution trace
            component: Sub-directory grouping the traces
            metadata: Extra fields stored next to the trace

        Returns:
            Path to the written file
        """
        timestamp = datetime.now()
        timestamp_str = timestamp.strftime("%Y%m%d_%H%M%S_%f")[:-3]
        content_hash = hashlib.md5(trace.execution_id.encode()).hexdigest()[:6]

        status = "error" if trace.failed_steps or trace.error_message else "success"
        filename = f"{timestamp_str}_{status}_{content_hash}.json"
        filepath = self._get_component_dir(component) / filename

        log_data = {
            "timestamp": timestamp.isoformat(),
            "component": component,
            "status": status,
            "trace": trace.to_dict(),
            "metadata": metadata or {},
        }

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(log_data, f, indent=2, default=str)

        logger.debug("Trace %s written to %s", trace.execution_id, filepath)
        return str(filepath)

    def get_recent_traces(self, component: str = "engine", limit: int = 10) -> List[Dict[str, Any]]:
        """
        Most recent trace documents for a component, newest first.
        """
        component_dir = self._get_component_dir(component)
        log_files = sorted(
            component_dir.glob("*.json"),
            key=lambda x: x.stat().st_mtime,
            reverse=True,
        )[:limit]

        traces = []
        for log_file in log_files:
            try:
                with open(log_file, "r", encoding="utf-8") as f:
                    log_data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Error reading trace file %s: %s", log_file, e)
                continue
            log_data["_filename"] = log_file.name
            traces.append(log_data)
        return traces

    def get_error_traces(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Error traces from every component, newest first."""
        error_logs = []
        for component_dir in (d for d in self.log_dir.iterdir() if d.is_dir()):
            for log_file in component_dir.glob("*_error_*.json"):
                try:
                    with open(log_file, "r", encoding="utf-8") as f:
                        log_data = json.load(f)
                except (OSError, json.JSONDecodeError) as e:
                    logger.warning("Error reading trace file %s: %s", log_file, e)
                    continue
                log_data["_filename"] = log_file.name
                log_data["_component"] = component_dir.name
                error_logs.append(log_data)

        error_logs.sort(key=lambda x: x.get("timestamp", ""), reverse=True)
        return error_logs[:limit]
