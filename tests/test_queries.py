"""
Tests for job and iteration listings and pagination.
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.domain.models import JobIteration
from app.domain.states import IterationStatus
from conftest import make_job

BASE = datetime(2024, 5, 1, tzinfo=timezone.utc)


async def drain(fetch, size):
    """Concatenate every page of a listing."""
    items, page = [], 0
    while True:
        result = await fetch(page, size)
        items.extend(result.items)
        if (page + 1) * size >= result.total:
            return items, result.total
        page += 1


class TestJobListing:

    async def test_filter_by_type(self, controller):
        await controller.add_job(make_job("a", type="cron"))
        await controller.add_job(make_job("b", type="once"))

        assert [j.code for j in await controller.get_all_jobs("once")] == ["b"]
        assert {j.code for j in await controller.get_all_jobs(None)} == {"a", "b"}
        assert {j.code for j in await controller.get_all_jobs("  ")} == {"a", "b"}

    @pytest.mark.parametrize("size", [1, 3, 7, 50])
    async def test_pages_reproduce_listing(self, controller, size):
        for i in range(17):
            await controller.add_job(make_job(f"job-{i:02d}"))

        paged, total = await drain(controller.get_jobs_page, size)

        assert total == 17
        assert [j.code for j in paged] == [j.code for j in await controller.get_all_jobs()]
        assert len({j.code for j in paged}) == 17

    async def test_pages_ordered_by_code(self, controller):
        for code in ("charlie", "alpha", "bravo"):
            await controller.add_job(make_job(code))

        page = await controller.get_jobs_page(0, 2)

        assert [j.code for j in page.items] == ["alpha", "bravo"]
        assert page.total == 3

    async def test_page_past_end_is_empty(self, controller):
        await controller.add_job(make_job("a"))
        page = await controller.get_jobs_page(5, 10)
        assert page.items == []
        assert page.total == 1

    async def test_invalid_page(self, controller):
        with pytest.raises(ValueError):
            await controller.get_jobs_page(-1, 10)


class TestIterations:

    async def _seed(self, controller):
        statuses = [IterationStatus.SUCCEEDED, IterationStatus.FAILED, IterationStatus.RUNNING]
        for i in range(12):
            await controller.add_iteration(JobIteration(
                job_id="nightly" if i % 2 == 0 else "hourly",
                status=statuses[i % 3],
                timestamp=BASE + timedelta(minutes=i),
            ))

    async def test_newest_first(self, controller):
        await self._seed(controller)

        page = await controller.get_iterations(page=0, size=3)

        assert [i.timestamp for i in page.items] == [
            BASE + timedelta(minutes=11),
            BASE + timedelta(minutes=10),
            BASE + timedelta(minutes=9),
        ]
        assert page.total == 12

    async def test_filter_by_job_and_status(self, controller):
        await self._seed(controller)

        page = await controller.get_iterations("nightly", IterationStatus.SUCCEEDED, 0, 50)

        # i in {0, 6}: even and divisible by 3
        assert [i.timestamp for i in page.items] == [BASE + timedelta(minutes=6), BASE]
        assert all(i.job_id == "nightly" for i in page.items)

    async def test_filter_by_status_set(self, controller):
        await self._seed(controller)

        page = await controller.get_iterations(
            status=[IterationStatus.FAILED, IterationStatus.RUNNING], page=0, size=50
        )

        assert page.total == 8
        assert {i.status for i in page.items} == {IterationStatus.FAILED, IterationStatus.RUNNING}

    @pytest.mark.parametrize("size", [1, 5, 12])
    async def test_pages_reproduce_log(self, controller, size):
        await self._seed(controller)

        paged, total = await drain(lambda p, s: controller.get_iterations(page=p, size=s), size)

        assert total == 12
        assert len({i.id for i in paged}) == 12
        assert paged == sorted(paged, key=lambda i: (i.timestamp, i.id), reverse=True)

    async def test_same_timestamp_is_stable(self, controller):
        for _ in range(4):
            await controller.add_iteration(JobIteration(job_id="a", status=IterationStatus.SUCCEEDED, timestamp=BASE))

        paged, _ = await drain(lambda p, s: controller.get_iterations(page=p, size=s), 1)

        assert [i.id for i in paged] == [4, 3, 2, 1]

    async def test_timestamp_stamped_when_missing(self, controller):
        stored = await controller.add_iteration(JobIteration(job_id="a", status=IterationStatus.RUNNING))

        assert stored.id is not None
        assert stored.timestamp is not None

    async def test_mixed_timestamp_forms_sort_as_utc(self, controller):
        for timestamp in (
            datetime(2024, 5, 1, 12, 0),
            datetime(2024, 5, 1, 13, 0, tzinfo=timezone.utc),
            datetime(2024, 5, 1, 17, 30, tzinfo=timezone(timedelta(hours=5))),
        ):
            await controller.add_iteration(JobIteration(job_id="j1", status=IterationStatus.SUCCEEDED, timestamp=timestamp))

        page = await controller.get_iterations("j1", None, 0, 10)

        assert [i.timestamp for i in page.items] == [
            datetime(2024, 5, 1, 13, 0, tzinfo=timezone.utc),
            datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
            datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        ]
