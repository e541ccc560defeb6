from common.models import RoleEnum, User


def completed_booking(bookings_client, listed_item, borrower_headers) -> int:
    owner = listed_item["owner_headers"]
    response = bookings_client.post(
        "/bookings",
        json={"item_id": listed_item["item"]["id"], "start_date": "2024-06-10", "end_date": "2024-06-12"},
        headers=borrower_headers,
    )
    booking_id = response.json()["id"]
    bookings_client.patch(f"/bookings/{booking_id}/status", json={"status": "confirmed"}, headers=owner)
    bookings_client.patch(f"/bookings/{booking_id}/status", json={"status": "completed"}, headers=owner)
    return booking_id


def test_review_lifecycle(bookings_client, reviews_client, users_client, listed_item, make_user):
    ben = make_user("ben")
    owner = listed_item["owner_headers"]
    owner_id = listed_item["item"]["owner_id"]
    booking_id = completed_booking(bookings_client, listed_item, ben)

    review_resp = reviews_client.post(
        "/reviews",
        json={"booking_id": booking_id, "rating": 4, "comment": "  Great drill <b>really</b>  "},
        headers=ben,
    )
    assert review_resp.status_code == 201
    review = review_resp.json()
    assert review["review_type"] == "lender"
    assert review["reviewed_id"] == owner_id
    assert review["comment"] == "Great drill &lt;b&gt;really&lt;/b&gt;"

    duplicate = reviews_client.post("/reviews", json={"booking_id": booking_id, "rating": 5}, headers=ben)
    assert duplicate.status_code == 409

    back = reviews_client.post("/reviews", json={"booking_id": booking_id, "rating": 5}, headers=owner)
    assert back.status_code == 201
    assert back.json()["review_type"] == "borrower"

    summary = reviews_client.get(f"/reviews/user/{owner_id}/summary").json()
    assert summary == {"user_id": owner_id, "average": 4.0, "count": 1}
    profile = users_client.get("/users/me", headers=owner).json()
    assert profile["reputation_score"] == 4.0

    updated = reviews_client.put(f"/reviews/{review['id']}", json={"rating": 2}, headers=ben)
    assert updated.status_code == 200
    assert users_client.get("/users/me", headers=owner).json()["reputation_score"] == 2.0

    lender_reviews = reviews_client.get(f"/reviews/user/{owner_id}", params={"review_type": "lender"}).json()
    assert [r["id"] for r in lender_reviews] == [review["id"]]

    assert reviews_client.delete(f"/reviews/{review['id']}", headers=owner).status_code == 403
    assert reviews_client.delete(f"/reviews/{review['id']}", headers=ben).status_code == 204
    assert users_client.get("/users/me", headers=owner).json()["reputation_score"] == 0.0


def test_only_completed_bookings_by_parties(bookings_client, reviews_client, listed_item, make_user):
    ben = make_user("ben")
    eve = make_user("eve")
    response = bookings_client.post(
        "/bookings",
        json={"item_id": listed_item["item"]["id"], "start_date": "2024-06-10", "end_date": "2024-06-12"},
        headers=ben,
    )
    booking_id = response.json()["id"]

    pending = reviews_client.post("/reviews", json={"booking_id": booking_id, "rating": 5}, headers=ben)
    assert pending.status_code == 409
    stranger = reviews_client.post("/reviews", json={"booking_id": booking_id, "rating": 1}, headers=eve)
    assert stranger.status_code == 403
    missing = reviews_client.post("/reviews", json={"booking_id": 999, "rating": 1}, headers=eve)
    assert missing.status_code == 404


def test_flagging_is_for_moderators(bookings_client, reviews_client, users_client, listed_item, make_user, db_session):
    ben = make_user("ben")
    mod = make_user("mod")
    booking_id = completed_booking(bookings_client, listed_item, ben)
    review_id = reviews_client.post(
        "/reviews", json={"booking_id": booking_id, "rating": 1, "comment": "meh"}, headers=ben
    ).json()["id"]

    assert reviews_client.post(f"/reviews/{review_id}/flag", headers=ben).status_code == 403

    moderator = db_session.query(User).filter(User.username == "mod").one()
    moderator.role = RoleEnum.MODERATOR
    db_session.commit()

    flagged = reviews_client.post(f"/reviews/{review_id}/flag", headers=mod)
    assert flagged.status_code == 200
    assert flagged.json()["is_flagged"] is True

    unflagged = reviews_client.post(f"/reviews/{review_id}/flag", params={"action": "unflag"}, headers=mod)
    assert unflagged.json()["is_flagged"] is False
