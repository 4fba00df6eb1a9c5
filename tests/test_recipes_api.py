import json

from conftest import API, create_recipe, login, register, signed_in


MISSING_ID = "0123456789abcdef01234567"


def _recipe(res):
    return res.json()["data"]["recipe"]


def test_recipe_routes_require_auth(client):
    assert client.get(f"{API}/recipes").status_code == 401
    assert client.get(f"{API}/recipes/{MISSING_ID}").status_code == 401
    assert client.get(f"{API}/recipes/favorites").status_code == 401


def test_create_recipe(client, images):
    session = signed_in(client, "alice")
    res = create_recipe(client, session["headers"], name="  Pancakes  ")
    assert res.status_code == 201
    recipe = _recipe(res)
    assert recipe["name"] == "Pancakes"
    assert recipe["instructions"] == "Mix and fry."
    assert recipe["ingredients"] == [
        {"name": "flour", "quantity": "200", "unit": "g"},
        {"name": "egg", "quantity": "2", "unit": "pcs"},
    ]
    assert recipe["thumbnailImage"].startswith(images.base_url)
    assert recipe["postedBy"] == {
        "_id": session["user"]["_id"],
        "username": "alice",
        "fullName": "Alice",
    }
    for key in ("_id", "postedAt", "createdAt", "updatedAt"):
        assert recipe[key]
    assert recipe["createdAt"].endswith("Z")
    assert len(images.stored) == 1


def test_create_recipe_requires_fields(client, images):
    session = signed_in(client, "alice")
    for missing in ("name", "instructions", "ingredients"):
        res = create_recipe(client, session["headers"], **{missing: ""})
        assert res.status_code == 400, missing
    assert images.stored == {}


def test_create_recipe_requires_thumbnail(client, images):
    session = signed_in(client, "alice")
    data = {"name": "Soup", "instructions": "Boil.", "ingredients": json.dumps([{"name": "water", "quantity": "1", "unit": "l"}])}
    res = client.post(f"{API}/recipes/create", data=data, headers=session["headers"])
    assert res.status_code == 400
    assert "thumbnail" in res.json()["message"].lower()


def test_create_recipe_rejects_bad_ingredients(client, images):
    session = signed_in(client, "alice")
    bad = [
        "not json",
        "[]",
        json.dumps({"name": "flour"}),
        json.dumps([{"name": "flour", "quantity": "1"}]),
        json.dumps([{"name": "flour", "quantity": "", "unit": "g"}]),
        json.dumps(["flour"]),
    ]
    for raw in bad:
        res = create_recipe(client, session["headers"], ingredients=raw)
        assert res.status_code == 400, raw
    # Validation happens before the upload.
    assert images.stored == {}


def test_failed_upload_on_create_is_500_and_stores_nothing(client, images, store, cfg):
    session = signed_in(client, "alice")
    images.fail = True
    res = create_recipe(client, session["headers"])
    assert res.status_code == 500
    assert res.json()["success"] is False
    assert store.recipes == {}


def test_list_recipes_newest_first_with_search(client):
    session = signed_in(client, "alice")
    for name in ("Banana Bread", "Pancakes", "banana split"):
        assert create_recipe(client, session["headers"], name=name).status_code == 201

    res = client.get(f"{API}/recipes", headers=session["headers"])
    assert res.status_code == 200
    names = [r["name"] for r in res.json()["data"]["recipes"]]
    assert names == ["banana split", "Pancakes", "Banana Bread"]

    res = client.get(f"{API}/recipes", params={"search": "BANANA"}, headers=session["headers"])
    assert [r["name"] for r in res.json()["data"]["recipes"]] == ["banana split", "Banana Bread"]

    # Regex metacharacters are matched literally.
    res = client.get(f"{API}/recipes", params={"search": ".*"}, headers=session["headers"])
    assert res.json()["data"]["recipes"] == []

    res = client.get(f"{API}/recipes", params={"search": "   "}, headers=session["headers"])
    assert len(res.json()["data"]["recipes"]) == 3


def test_user_recipes_only_returns_own(client, make_client):
    alice = signed_in(client, "alice")
    bob_client = make_client()
    bob = signed_in(bob_client, "bob")

    create_recipe(client, alice["headers"], name="Alice Pie")
    create_recipe(bob_client, bob["headers"], name="Bob Stew")

    res = client.get(f"{API}/recipes/user-recipes", headers=alice["headers"])
    assert [r["name"] for r in res.json()["data"]["recipes"]] == ["Alice Pie"]

    res = bob_client.get(f"{API}/recipes/user-recipes", headers=bob["headers"])
    assert [r["name"] for r in res.json()["data"]["recipes"]] == ["Bob Stew"]


def test_get_recipe_by_id(client):
    session = signed_in(client, "alice")
    recipe = _recipe(create_recipe(client, session["headers"]))

    res = client.get(f"{API}/recipes/{recipe['_id']}", headers=session["headers"])
    assert res.status_code == 200
    assert _recipe(res)["_id"] == recipe["_id"]
    assert _recipe(res)["postedBy"]["username"] == "alice"

    assert client.get(f"{API}/recipes/{MISSING_ID}", headers=session["headers"]).status_code == 404
    assert client.get(f"{API}/recipes/not-an-id", headers=session["headers"]).status_code == 404


def test_update_recipe_partial(client, images):
    session = signed_in(client, "alice")
    recipe = _recipe(create_recipe(client, session["headers"]))

    res = client.patch(
        f"{API}/recipes/{recipe['_id']}/update",
        data={"name": "Better Pancakes", "instructions": ""},
        headers=session["headers"],
    )
    assert res.status_code == 200
    updated = _recipe(res)
    assert updated["name"] == "Better Pancakes"
    assert updated["instructions"] == recipe["instructions"]
    assert updated["ingredients"] == recipe["ingredients"]
    assert updated["thumbnailImage"] == recipe["thumbnailImage"]
    assert updated["postedBy"]["_id"] == session["user"]["_id"]

    res = client.patch(
        f"{API}/recipes/{recipe['_id']}/update",
        data={"ingredients": json.dumps([{"name": "milk", "quantity": 0.5, "unit": "l"}])},
        files={"thumbnailImage": ("new.jpg", b"jpeg", "image/jpeg")},
        headers=session["headers"],
    )
    assert res.status_code == 200
    updated = _recipe(res)
    assert updated["ingredients"] == [{"name": "milk", "quantity": "0.5", "unit": "l"}]
    assert updated["thumbnailImage"] != recipe["thumbnailImage"]
    assert updated["thumbnailImage"].endswith(".jpg")


def test_update_recipe_rejects_bad_ingredients(client):
    session = signed_in(client, "alice")
    recipe = _recipe(create_recipe(client, session["headers"]))
    res = client.patch(
        f"{API}/recipes/{recipe['_id']}/update",
        data={"ingredients": "[]"},
        headers=session["headers"],
    )
    assert res.status_code == 400


def test_failed_upload_on_update_keeps_old_thumbnail(client, images):
    session = signed_in(client, "alice")
    recipe = _recipe(create_recipe(client, session["headers"]))

    images.fail = True
    res = client.patch(
        f"{API}/recipes/{recipe['_id']}/update",
        data={"name": "Renamed"},
        files={"thumbnailImage": ("new.png", b"png", "image/png")},
        headers=session["headers"],
    )
    assert res.status_code == 200
    updated = _recipe(res)
    assert updated["name"] == "Renamed"
    assert updated["thumbnailImage"] == recipe["thumbnailImage"]


def test_only_owner_can_update_or_delete(client, make_client, store):
    alice = signed_in(client, "alice")
    recipe = _recipe(create_recipe(client, alice["headers"]))

    bob_client = make_client()
    bob = signed_in(bob_client, "bob")

    res = bob_client.patch(f"{API}/recipes/{recipe['_id']}/update", data={"name": "Mine now"}, headers=bob["headers"])
    assert res.status_code == 403
    res = bob_client.delete(f"{API}/recipes/{recipe['_id']}/delete", headers=bob["headers"])
    assert res.status_code == 403

    stored = store.recipes[recipe["_id"]]
    assert stored["name"] == "Pancakes"
    assert stored["postedBy"] == alice["user"]["_id"]


def test_update_and_delete_missing_recipe(client):
    session = signed_in(client, "alice")
    res = client.patch(f"{API}/recipes/{MISSING_ID}/update", data={"name": "x"}, headers=session["headers"])
    assert res.status_code == 404
    assert client.delete(f"{API}/recipes/{MISSING_ID}/delete", headers=session["headers"]).status_code == 404


def test_favorites_add_list_remove(client):
    session = signed_in(client, "alice")
    first = _recipe(create_recipe(client, session["headers"], name="First"))
    second = _recipe(create_recipe(client, session["headers"], name="Second"))

    assert client.post(f"{API}/recipes/{first['_id']}/add-favorite", headers=session["headers"]).status_code == 200
    assert client.post(f"{API}/recipes/{second['_id']}/add-favorite", headers=session["headers"]).status_code == 200

    res = client.get(f"{API}/recipes/favorites", headers=session["headers"])
    assert res.status_code == 200
    assert {r["name"] for r in res.json()["data"]["recipes"]} == {"First", "Second"}
    assert all(r["postedBy"]["username"] == "alice" for r in res.json()["data"]["recipes"])

    res = client.delete(f"{API}/recipes/{first['_id']}/remove-favorite", headers=session["headers"])
    assert res.status_code == 200
    res = client.get(f"{API}/recipes/favorites", headers=session["headers"])
    assert [r["name"] for r in res.json()["data"]["recipes"]] == ["Second"]


def test_add_favorite_twice_is_rejected(client, store):
    session = signed_in(client, "alice")
    recipe = _recipe(create_recipe(client, session["headers"]))

    url = f"{API}/recipes/{recipe['_id']}/add-favorite"
    assert client.post(url, headers=session["headers"]).status_code == 200
    res = client.post(url, headers=session["headers"])
    assert res.status_code == 400
    assert res.json()["success"] is False

    user = store.users[session["user"]["_id"]]
    assert user["favoriteRecipes"] == [recipe["_id"]]


def test_add_favorite_missing_recipe(client):
    session = signed_in(client, "alice")
    res = client.post(f"{API}/recipes/{MISSING_ID}/add-favorite", headers=session["headers"])
    assert res.status_code == 404


def test_remove_favorite_not_in_list(client):
    session = signed_in(client, "alice")
    recipe = _recipe(create_recipe(client, session["headers"]))

    res = client.delete(f"{API}/recipes/{recipe['_id']}/remove-favorite", headers=session["headers"])
    assert res.status_code == 400

    res = client.delete(f"{API}/recipes/{MISSING_ID}/remove-favorite", headers=session["headers"])
    assert res.status_code == 404


def test_dangling_favorites_are_skipped_and_removable(client, store):
    session = signed_in(client, "alice")
    recipe = _recipe(create_recipe(client, session["headers"], name="Gone Soon"))
    keep = _recipe(create_recipe(client, session["headers"], name="Keeper"))
    client.post(f"{API}/recipes/{recipe['_id']}/add-favorite", headers=session["headers"])
    client.post(f"{API}/recipes/{keep['_id']}/add-favorite", headers=session["headers"])

    # Simulate a recipe vanishing without the favorites cleanup.
    del store.recipes[recipe["_id"]]

    res = client.get(f"{API}/recipes/favorites", headers=session["headers"])
    assert [r["name"] for r in res.json()["data"]["recipes"]] == ["Keeper"]

    res = client.delete(f"{API}/recipes/{recipe['_id']}/remove-favorite", headers=session["headers"])
    assert res.status_code == 200
    assert store.users[session["user"]["_id"]]["favoriteRecipes"] == [keep["_id"]]


def test_favorites_empty(client):
    session = signed_in(client, "alice")
    res = client.get(f"{API}/recipes/favorites", headers=session["headers"])
    assert res.status_code == 200
    assert res.json()["data"]["recipes"] == []


def test_delete_recipe_removes_it_from_every_favorites_list(client, make_client, store):
    alice = signed_in(client, "alice")
    recipe = _recipe(create_recipe(client, alice["headers"]))
    other = _recipe(create_recipe(client, alice["headers"], name="Waffles"))

    bob_client = make_client()
    bob = signed_in(bob_client, "bob")
    for c, s in ((client, alice), (bob_client, bob)):
        assert c.post(f"{API}/recipes/{recipe['_id']}/add-favorite", headers=s["headers"]).status_code == 200
    bob_client.post(f"{API}/recipes/{other['_id']}/add-favorite", headers=bob["headers"])

    res = client.delete(f"{API}/recipes/{recipe['_id']}/delete", headers=alice["headers"])
    assert res.status_code == 200

    assert recipe["_id"] not in store.recipes
    assert store.users[alice["user"]["_id"]]["favoriteRecipes"] == []
    assert store.users[bob["user"]["_id"]]["favoriteRecipes"] == [other["_id"]]

    assert client.get(f"{API}/recipes/{recipe['_id']}", headers=alice["headers"]).status_code == 404
    res = bob_client.get(f"{API}/recipes/favorites", headers=bob["headers"])
    assert [r["name"] for r in res.json()["data"]["recipes"]] == ["Waffles"]


def test_owner_gone_shows_null_posted_by(client, store):
    session = signed_in(client, "alice")
    recipe = _recipe(create_recipe(client, session["headers"]))
    bob = signed_in(client, "bob")
    del store.users[session["user"]["_id"]]

    res = client.get(f"{API}/recipes/{recipe['_id']}", headers=bob["headers"])
    assert res.status_code == 200
    assert _recipe(res)["postedBy"] is None


def test_alice_and_bob_walkthrough(client, make_client, cfg):
    assert register(client, "alice", email="alice@example.com", password="secret1").status_code == 201
    res = register(client, "alice2", email="alice@example.com", password="secret1")
    assert res.status_code == 409

    res = login(client, "alice", password="secret1")
    assert res.status_code == 200
    assert res.json()["data"]["accessToken"]
    assert res.cookies.get(cfg.AUTH_REFRESH_COOKIE_NAME)
    alice_headers = {"Authorization": f"Bearer {res.json()['data']['accessToken']}"}
    alice_id = res.json()["data"]["user"]["_id"]

    assert create_recipe(client, alice_headers, instructions="").status_code == 400

    res = create_recipe(client, alice_headers, name="Grandma's Lasagna")
    assert res.status_code == 201
    recipe = _recipe(res)
    assert recipe["postedBy"]["_id"] == alice_id

    res = client.get(f"{API}/recipes", params={"search": "lasag"}, headers=alice_headers)
    assert [r["_id"] for r in res.json()["data"]["recipes"]] == [recipe["_id"]]

    bob_client = make_client()
    bob = signed_in(bob_client, "bob")
    url = f"{API}/recipes/{recipe['_id']}/add-favorite"
    assert bob_client.post(url, headers=bob["headers"]).status_code == 200
    assert bob_client.post(url, headers=bob["headers"]).status_code == 400

    assert client.delete(f"{API}/recipes/{MISSING_ID}/delete", headers=alice_headers).status_code == 404
