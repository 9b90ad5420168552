"""HTTP benchmark for the article listing endpoints.

Run against a seeded server (``scripts/seed.py``).  Listings are requested
both anonymously and as a viewer so the favourite-flag lookup is measured.
"""
import argparse
import asyncio
import statistics
import time

import httpx

DEFAULT_BASE_URL = "http://localhost:8000"

ENDPOINTS = [
    ("feed", "/api/v1/articles/feed", True),
    ("feed limit=50", "/api/v1/articles/feed?limit=50", True),
    ("search title", "/api/v1/articles/search?title=optimize", False),
    ("search tags", "/api/v1/articles/search?tags=python", False),
    ("search all", "/api/v1/articles/search", False),
    ("by author", "/api/v1/profiles/user_0001/articles", False),
    ("by author (viewer)", "/api/v1/profiles/user_0001/articles", True),
    ("favourites", "/api/v1/profiles/user_0002/favourites", True),
    ("metrics", "/api/v1/metrics", False),
]


def _percentile(times: list[float], fraction: float) -> float:
    ordered = sorted(times)
    return round(ordered[min(int(len(ordered) * fraction), len(ordered) - 1)], 2)


async def benchmark_endpoint(
    client: httpx.AsyncClient,
    path: str,
    headers: dict[str, str],
    iterations: int,
) -> dict:
    times: list[float] = []
    query_counts: list[int] = []
    errors = 0

    # Warmup
    for _ in range(3):
        await client.get(path, headers=headers)

    for _ in range(iterations):
        start = time.perf_counter()
        try:
            resp = await client.get(path, headers=headers)
        except httpx.HTTPError:
            errors += 1
            continue
        elapsed = (time.perf_counter() - start) * 1000
        if resp.status_code != 200:
            errors += 1
            continue
        times.append(elapsed)
        if "x-query-count" in resp.headers:
            query_counts.append(int(resp.headers["x-query-count"]))

    if not times:
        return {"error": f"All {iterations} requests failed"}
    return {
        "avg_ms": round(statistics.mean(times), 2),
        "p50_ms": _percentile(times, 0.5),
        "p95_ms": _percentile(times, 0.95),
        "queries": round(statistics.mean(query_counts), 1) if query_counts else "N/A",
        "errors": errors,
    }


async def run_benchmark(base_url: str, viewer_id: int, iterations: int) -> None:
    print(f"Conduit listing benchmark: {iterations} iterations per endpoint against {base_url}")
    async with httpx.AsyncClient(base_url=base_url) as client:
        try:
            resp = await client.get("/health")
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            print(f"ERROR: health check failed: {exc}")
            return

        print(f"{'Endpoint':<24} {'Avg':>9} {'P50':>9} {'P95':>9} {'Queries':>8} {'Err':>4}")
        print("-" * 68)
        for name, path, as_viewer in ENDPOINTS:
            headers = {"X-Viewer-Id": str(viewer_id)} if as_viewer else {}
            result = await benchmark_endpoint(client, path, headers, iterations)
            if "error" in result:
                print(f"{name:<24} {'ERROR':>9}  {result['error']}")
                continue
            print(
                f"{name:<24} "
                f"{result['avg_ms']:>7.1f}ms "
                f"{result['p50_ms']:>7.1f}ms "
                f"{result['p95_ms']:>7.1f}ms "
                f"{str(result['queries']):>8} "
                f"{result['errors']:>4}"
            )


def main():
    parser = argparse.ArgumentParser(description="Benchmark the Conduit listing endpoints")
    parser.add_argument("-n", "--iterations", type=int, default=50, help="Iterations per endpoint")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL, help="API base URL")
    parser.add_argument("--viewer-id", type=int, default=1, help="User id sent as the viewer")
    args = parser.parse_args()
    asyncio.run(run_benchmark(args.base_url, args.viewer_id, args.iterations))


if __name__ == "__main__":
    main()
