"""Task listing load test — randomized filters against a listing endpoint.

Twenty users query the task list for 20 seconds with a random status and a
one-character name filter, authenticating with a TOKEN cookie. Run with:

    LOADCHECK_TOKEN=... python examples/task_listing.py

Override the run shape with LOADCHECK_VUS / LOADCHECK_DURATION.
"""

from __future__ import annotations

import os

from loadcheck import (
    CheckSet,
    Cookie,
    ParamStrategy,
    RequestBuilder,
    RunConfig,
    json_field_gt,
    parse_duration,
    run_load_test,
    secret_from_env,
    status_is,
)

BASE_URL = os.environ.get("LOADCHECK_BASE_URL", "http://localhost:8080")


def task_filters(params: ParamStrategy) -> dict[str, object]:
    """Random status, derived epic flag and a one-letter name prefix."""
    status = params.random_int(0, 1)
    return {
        "status": status,
        "is_epic": status == 1,
        "name": params.random_string(1),
    }


def main() -> None:
    builder = RequestBuilder(
        BASE_URL
        + "/api/task?federation_uuid={federation_uuid}&is_epic={is_epic}"
        "&project_uuid={project_uuid}&status={status}&limit={limit}&name={name}",
        params=task_filters,
        constants={
            "federation_uuid": os.environ.get(
                "LOADCHECK_FEDERATION_UUID", "cb06b506-f46f-4bf4-9edb-2b12b1367681"
            ),
            "project_uuid": os.environ.get(
                "LOADCHECK_PROJECT_UUID", "8784f657-0f21-459e-b305-29a0cbda796e"
            ),
            "limit": 25,
        },
        cookies={"TOKEN": Cookie(secret_from_env("LOADCHECK_TOKEN"), replace=True)},
    )
    checks = (
        CheckSet()
        .add("is status 200", status_is(200))
        .add("is found", json_field_gt("count", 0))
    )
    config = RunConfig(
        virtual_users=int(os.environ.get("LOADCHECK_VUS", "20")),
        duration_seconds=parse_duration(os.environ.get("LOADCHECK_DURATION", "20s")),
    )

    result = run_load_test(config, builder, checks)

    summary = result.latency_summary()
    print(f"requests:     {result.total_requests}")
    for name in checks.names:
        print(f"{name + ':':<14}{result.check_pass_rate(name):.1%} passed")
    print(f"p95 latency:  {summary.latency_p95:.1f} ms")


if __name__ == "__main__":
    main()
