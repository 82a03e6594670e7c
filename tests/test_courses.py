"""
Tests for the course catalog and enrolled-course listing.
"""
from datetime import datetime

import pytest
from httpx import AsyncClient


class TestCourseCatalog:
    @pytest.mark.asyncio
    async def test_student_cannot_create_course(self, client: AsyncClient, student_headers: dict) -> None:
        response = await client.post(
            "/api/courses",
            json={"title": "Nope", "price": 10},
            headers=student_headers,
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_instructor_creates_course(
        self, client: AsyncClient, instructor: dict, instructor_headers: dict
    ) -> None:
        response = await client.post(
            "/api/courses",
            json={"title": "FastAPI in depth", "description": "Routers", "price": 49.5},
            headers=instructor_headers,
        )

        assert response.status_code == 201
        course = response.json()["course"]
        assert course["course_id"].startswith("COURSE_")
        assert course["instructor_id"] == instructor["user_id"]
        assert course["enrolled_students"] == []

    @pytest.mark.asyncio
    async def test_price_must_be_positive(self, client: AsyncClient, instructor_headers: dict) -> None:
        response = await client.post(
            "/api/courses",
            json={"title": "Free?", "price": 0},
            headers=instructor_headers,
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_and_get(self, client: AsyncClient, course: dict) -> None:
        listing = await client.get("/api/courses")
        assert listing.status_code == 200
        assert [c["course_id"] for c in listing.json()["courses"]] == [course["course_id"]]

        detail = await client.get(f"/api/courses/{course['course_id']}")
        assert detail.status_code == 200
        assert detail.json()["course"]["title"] == "Async Python"

    @pytest.mark.asyncio
    async def test_get_missing_course(self, client: AsyncClient) -> None:
        response = await client.get("/api/courses/COURSE_MISSING")
        assert response.status_code == 404


class TestMyCourses:
    @pytest.mark.asyncio
    async def test_only_completed_enrollments_listed(
        self, client: AsyncClient, mongo_db, student: dict, student_headers: dict, course: dict
    ) -> None:
        base = {
            "user_id": student["user_id"],
            "course_id": course["course_id"],
            "checkout_type": "web",
            "amount": 10000,
            "currency": "egp",
        }
        await mongo_db.enrollments.insert_many([
            {**base, "enrollment_id": "ENR_PENDING", "payment_status": "pending",
             "stripe_payment_id": "cs_pending", "enrolled_at": None},
            {**base, "enrollment_id": "ENR_DONE", "payment_status": "completed",
             "stripe_payment_id": "cs_done", "enrolled_at": datetime.utcnow()},
        ])

        response = await client.get("/api/enrollments/my-courses", headers=student_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["enrollments"][0]["enrollment_id"] == "ENR_DONE"
        assert data["enrollments"][0]["course"]["course_id"] == course["course_id"]
