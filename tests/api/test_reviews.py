"""
API tests for review endpoints.
"""


class TestReviewEndpoints:
    """Tests for POST/GET /api/albums/{id}/reviews."""

    def test_add_review_updates_album(self, client, album_id, user_headers):
        """POST a review returns it and the album aggregates follow."""
        r = client.post(
            f"/api/albums/{album_id}/reviews",
            json={"rating": 4, "text": "Lovely"},
            headers=user_headers,
        )
        assert r.status_code == 200
        review = r.json()
        assert review["albumId"] == album_id
        assert review["rating"] == 4
        assert review["text"] == "Lovely"
        assert review["userId"] == "user-123"
        assert "timestamp" in review
        
        album = client.get(f"/api/albums/{album_id}").json()
        assert album["numRatings"] == 1
        assert album["sumRating"] == 4
        assert album["avgRating"] == 4
        assert album["ratingRange"] == "Popular"

    def test_add_review_requires_identity(self, client, album_id):
        """Anonymous callers cannot post reviews."""
        r = client.post(f"/api/albums/{album_id}/reviews", json={"rating": 4})
        assert r.status_code == 401
        assert client.get(f"/api/albums/{album_id}").json()["numRatings"] == 0

    def test_add_review_album_not_found(self, client, user_headers):
        """Reviewing a missing album is a 404 and writes nothing."""
        r = client.post("/api/albums/missing/reviews", json={"rating": 4}, headers=user_headers)
        assert r.status_code == 404
        assert client.get("/api/health").json()["reviews"] == 0

    def test_add_review_out_of_range(self, client, album_id, user_headers):
        """Ratings outside 1-5 are rejected."""
        for rating in (0, 6):
            r = client.post(f"/api/albums/{album_id}/reviews", json={"rating": rating}, headers=user_headers)
            assert r.status_code == 422
        r = client.post(f"/api/albums/{album_id}/reviews", json={"text": "no rating"}, headers=user_headers)
        assert r.status_code == 422

    def test_list_reviews_newest_first(self, client, album_id, user_headers):
        """GET reviews returns every review, newest first."""
        for rating in (2, 5):
            client.post(f"/api/albums/{album_id}/reviews", json={"rating": rating}, headers=user_headers)
        
        r = client.get(f"/api/albums/{album_id}/reviews")
        assert r.status_code == 200
        data = r.json()
        assert data["albumId"] == album_id
        assert [x["rating"] for x in data["reviews"]] == [5, 2]

    def test_list_reviews_not_found(self, client):
        """GET reviews of a missing album is a 404."""
        assert client.get("/api/albums/missing/reviews").status_code == 404

    def test_reviews_cannot_be_changed(self, client, album_id, user_headers):
        """There is no route to edit or delete a review."""
        review_id = client.post(
            f"/api/albums/{album_id}/reviews", json={"rating": 3}, headers=user_headers
        ).json()["id"]
        
        assert client.put(f"/api/albums/{album_id}/reviews/{review_id}", json={"rating": 5}).status_code in (404, 405)
        assert client.delete(f"/api/albums/{album_id}/reviews/{review_id}").status_code in (404, 405)
        assert client.delete(f"/api/albums/{album_id}/reviews").status_code == 405
        
        reviews = client.get(f"/api/albums/{album_id}/reviews").json()["reviews"]
        assert [x["rating"] for x in reviews] == [3]
