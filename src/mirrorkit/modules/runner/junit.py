"""JUnit XML 报告（testsuites / testsuite / testcase），供 CI 读取。"""
from __future__ import annotations

from pathlib import Path
from typing import List
from xml.etree import ElementTree as ET

from ...core.constants import StepStatus
from .reporter import ScenarioResult


def _seconds(value: float) -> str:
    return f"{value:.3f}"


def build_junit(results: List[ScenarioResult]) -> ET.Element:
    steps = [r for res in results for r in res.step_results]
    root = ET.Element("testsuites", {
        "tests": str(len(steps) + sum(1 for res in results if res.error)),
        "failures": str(sum(1 for r in steps if r.failed) + sum(1 for res in results if res.error)),
        "skipped": str(sum(1 for r in steps if r.status == StepStatus.SKIPPED)),
        "time": _seconds(sum(res.duration_seconds for res in results)),
    })

    for res in results:
        suite = ET.SubElement(root, "testsuite", {
            "name": res.name,
            "tests": str(len(res.step_results) + (1 if res.error else 0)),
            "failures": str(res.count(StepStatus.FAILED) + (1 if res.error else 0)),
            "skipped": str(res.count(StepStatus.SKIPPED)),
            "time": _seconds(res.duration_seconds),
        })

        if res.error:
            case = ET.SubElement(suite, "testcase", {"name": "parse", "classname": res.name, "time": _seconds(0)})
            failure = ET.SubElement(case, "failure", {"message": res.error})
            failure.text = res.error

        for r in res.step_results:
            case = ET.SubElement(suite, "testcase", {
                "name": r.step.display_name,
                "classname": res.name,
                "time": _seconds(r.duration_seconds),
            })
            if r.status == StepStatus.FAILED:
                message = r.message or "Step failed"
                failure = ET.SubElement(case, "failure", {"message": message})
                failure.text = message
            elif r.status == StepStatus.SKIPPED:
                ET.SubElement(case, "skipped", {"message": r.message or "Step skipped"})

    return root


def write_junit(path: str, results: List[ScenarioResult]) -> str:
    root = build_junit(results)
    ET.indent(root, space="  ")
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    ET.ElementTree(root).write(out, encoding="UTF-8", xml_declaration=True)
    return str(out)
