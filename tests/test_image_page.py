"""Image page and command tests."""

import hashlib

import pytest

from imageboard.models.enums import Permission
from imageboard.services.images import ImageService
from imageboard.services.tags import TagService

VIEWER = int(Permission.VIEW_IMAGES_AND_TAGS)


@pytest.fixture
def image_id(db, make_user):
    """An image owned by someone other than the logged-on test users."""
    owner = make_user("owner", VIEWER)
    return ImageService(db).new_image("sunset.png", "abc.png", owner.id, "")


def _command(client, command, image_id, **fields):
    data = {"command": command, "ID": str(image_id), **fields}
    return client.post("/image", data=data, follow_redirects=False)


def test_image_page_without_id(client):
    response = client.get("/image")
    assert response.status_code == 200
    assert "No image selected." in response.text


def test_image_page_missing_image(client):
    response = client.get("/image", params={"ID": "999"})
    assert "Failed to get image information." in response.text


def test_image_page_renders_image(client, db, image_id):
    tags = TagService(db)
    tags.add_tags([tags.new_tag("sky", "", None)], image_id, None)

    response = client.get("/image", params={"ID": image_id})
    assert response.status_code == 200
    assert f'data-image-id="{image_id}"' in response.text
    assert '<h2 class="name">sunset.png</h2>' in response.text
    assert '<img class="content" src="/content/abc.png"' in response.text
    assert ">sky</a>" in response.text
    # Anonymous visitors get no edit forms
    assert 'value="ChangeVote"' not in response.text


def test_account_required_to_view(client, settings, image_id):
    settings.account_required_to_view = True
    response = client.get("/image", params={"ID": image_id}, follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"].startswith("/logon?prevMessage=Access+to+this+server")


def test_change_vote(client, db, admin, image_id):
    response = _command(client, "ChangeVote", image_id, NewVote="7")
    assert response.status_code == 200
    assert "Successfully changed vote!" in response.text
    assert "Score: 7 (your vote: 7)" in response.text
    assert ImageService(db).get_user_vote_score(admin.id, image_id) == 7


@pytest.mark.parametrize("vote", ["11", "-11"])
def test_change_vote_out_of_range(client, db, admin, image_id, vote):
    response = _command(client, "ChangeVote", image_id, NewVote=vote)
    assert "Score must be between -10 and 10." in response.text
    assert ImageService(db).get_user_vote_score(admin.id, image_id) == 0


def test_change_vote_not_a_number(client, admin, image_id):
    response = _command(client, "ChangeVote", image_id, NewVote="lots")
    assert "Failed to parse your vote value." in response.text


@pytest.mark.parametrize("vote", ["1_0", " 5", "5 ", "\u00b2", "--1"])
def test_change_vote_rejects_non_integer_text(client, db, admin, image_id, vote):
    response = _command(client, "ChangeVote", image_id, NewVote=vote)
    assert response.status_code == 200
    assert "Failed to parse your vote value." in response.text
    assert ImageService(db).get_user_vote_score(admin.id, image_id) == 0


def test_change_vote_with_explicit_sign(client, db, admin, image_id):
    response = _command(client, "ChangeVote", image_id, NewVote="+5")
    assert "Successfully changed vote!" in response.text
    assert ImageService(db).get_user_vote_score(admin.id, image_id) == 5


def test_change_vote_requires_logon(client, image_id):
    response = _command(client, "ChangeVote", image_id, NewVote="1")
    assert response.status_code == 302
    assert response.headers["location"].startswith("/logon?prevMessage=")


def test_change_vote_without_permission(client, make_user, login, image_id, celery_tasks):
    user = make_user("viewer", VIEWER)
    login("viewer")
    response = _command(client, "ChangeVote", image_id, NewVote="3")
    assert "You do not have permissions to vote on this image." in response.text
    celery_tasks["audit"].assert_called_with(
        user.id, "IMAGE-SCORE", "viewer failed to score image. No permissions."
    )


def test_owner_can_vote_on_own_image(client, db, make_user, login):
    owner = make_user("viewer", VIEWER)
    login("viewer")
    own_image = ImageService(db).new_image("mine.png", "mine.png", owner.id, "")
    response = _command(client, "ChangeVote", own_image, NewVote="-3")
    assert "Successfully changed vote!" in response.text


def test_owner_control_can_be_disabled(client, db, settings, make_user, login):
    settings.users_control_own_objects = False
    owner = make_user("viewer", VIEWER)
    login("viewer")
    own_image = ImageService(db).new_image("mine.png", "mine.png", owner.id, "")
    response = _command(client, "ChangeVote", own_image, NewVote="-3")
    assert "You do not have permissions to vote on this image." in response.text


def test_change_vote_bad_image_id(client, admin):
    response = _command(client, "ChangeVote", "abc", NewVote="1")
    assert "Failed to parse image id." in response.text


@pytest.mark.parametrize("raw_id", ["\u00b2", "\u0661", "1_0"])
def test_non_ascii_digit_ids_are_rejected(client, db, admin, image_id, raw_id):
    page = client.get("/image", params={"ID": raw_id})
    assert page.status_code == 200
    assert "No image selected." in page.text

    vote = _command(client, "ChangeVote", raw_id, NewVote="1")
    assert vote.status_code == 200
    assert "Failed to parse image id." in vote.text

    tags = TagService(db)
    tag_id = tags.new_tag("sky", "", None)
    tags.add_tags([tag_id], image_id, None)
    remove = _command(client, "RemoveTag", image_id, TagID=raw_id)
    assert remove.status_code == 200
    assert "Error parsing tag id." in remove.text
    assert len(tags.get_image_tags(image_id)) == 1


def test_remove_tag_not_attached(client, db, admin, image_id):
    tag_id = TagService(db).new_tag("sky", "", None)
    response = _command(client, "RemoveTag", image_id, TagID=str(tag_id))
    assert "Failed to remove tag. Was it attached in the first place?" in response.text


def test_remove_tag(client, db, admin, image_id, celery_tasks):
    tags = TagService(db)
    tag_id = tags.new_tag("sky", "", None)
    tags.add_tags([tag_id], image_id, None)

    response = _command(client, "RemoveTag", image_id, TagID=str(tag_id))
    assert "Tag removed successfully." in response.text
    assert tags.get_image_tags(image_id) == []
    celery_tasks["audit_by_name"].assert_called_once_with(
        "admin", "REMOVE-IMAGETAG", f"admin removed tag from image {image_id}. tag {tag_id}"
    )


def test_remove_tag_without_ids(client, admin):
    response = client.post("/image", data={"command": "RemoveTag", "ID": "1"})
    assert "No ID provided to remove." in response.text


def test_remove_tag_without_permission(client, db, make_user, login, image_id):
    tags = TagService(db)
    tag_id = tags.new_tag("sky", "", None)
    tags.add_tags([tag_id], image_id, None)
    make_user("viewer", VIEWER)
    login("viewer")

    response = _command(client, "RemoveTag", image_id, TagID=str(tag_id))
    assert "User does not have modify permission for tags on images." in response.text
    assert len(tags.get_image_tags(image_id)) == 1


def test_add_tags(client, db, admin, image_id):
    response = _command(client, "AddTags", image_id, NewTags="Sky, clouds -ignored rating:safe")
    assert response.status_code == 200
    assert ">clouds</a>" in response.text
    assert ">sky</a>" in response.text
    names = [tag.name for tag in TagService(db).get_image_tags(image_id)]
    assert names == ["clouds", "sky"]


def test_add_tags_without_create_permission(client, make_user, login, db):
    owner = make_user("viewer", VIEWER)
    login("viewer")
    own_image = ImageService(db).new_image("mine.png", "mine.png", owner.id, "")
    response = _command(client, "AddTags", own_image, NewTags="sky")
    assert (
        "Unable to use tag sky due to insufficient permissions of user to create tags."
        in response.text
    )


def test_change_rating(client, db, admin, image_id):
    response = _command(client, "ChangeRating", image_id, NewRating=" Safe ")
    assert "Rating: safe" in response.text
    db.expire_all()
    assert ImageService(db).get_image(image_id).rating == "safe"


def test_change_rating_empty(client, admin, image_id):
    response = _command(client, "ChangeRating", image_id, NewRating="  ")
    assert "No rating provided." in response.text
    assert "Rating: unrated" in response.text


def test_change_source(client, admin, image_id):
    response = _command(client, "ChangeSource", image_id, NewSource="https://example.com/sunset")
    assert "Successfully changed source!" in response.text
    assert '<a href="https://example.com/sunset" rel="noreferrer">' in response.text


def test_change_source_not_a_url(client, admin, image_id):
    response = _command(client, "ChangeSource", image_id, NewSource="my camera")
    assert "my camera" in response.text
    assert 'href="my camera"' not in response.text


def test_change_name(client, db, admin, image_id):
    response = _command(
        client, "ChangeName", image_id, NewName="Dusk", NewDescription="over the bay"
    )
    assert "Successfully changed name/description!" in response.text
    db.expire_all()
    image = ImageService(db).get_image(image_id)
    assert image.name == "Dusk"
    assert image.description == "over the bay"


def test_prev_next_links(client, db, make_user):
    owner = make_user("owner", VIEWER)
    images = ImageService(db)
    tags = TagService(db)
    sky = tags.new_tag("sky", "", owner.id)
    ids = [images.new_image(f"{n}.png", f"{n}.png", owner.id, "") for n in range(3)]
    for image in ids:
        tags.add_tags([sky], image, owner.id)

    response = client.get("/image", params={"ID": ids[1], "SearchTerms": "sky"})
    assert f'class="previous" href="/image?ID={ids[2]}&SearchTerms=sky"' in response.text
    assert f'class="next" href="/image?ID={ids[0]}&SearchTerms=sky"' in response.text


def test_slideshow_view(client, image_id):
    response = client.get("/image", params={"ID": image_id, "ViewMode": "slideshow"})
    assert f'class="slideshow" data-image-id="{image_id}"' in response.text


def test_upload_through_form(client, db, admin, celery_tasks):
    response = client.post(
        "/image",
        data={"command": "uploadFile", "SearchTags": "sky"},
        files=[
            ("fileToUpload", ("a.png", b"first", "image/png")),
            ("fileToUpload", ("b.png", b"second", "image/png")),
        ],
    )
    assert response.status_code == 200
    location = hashlib.sha256(b"second").hexdigest() + ".png"
    assert f"/content/{location}" in response.text
    assert ">sky</a>" in response.text
    assert celery_tasks["thumbnail"].call_count == 2


def test_upload_duplicate_links_existing_image(client, admin):
    files = {"fileToUpload": ("a.png", b"same bytes", "image/png")}
    client.post("/image", data={"command": "uploadFile"}, files=files)
    response = client.post(
        "/image",
        data={"command": "uploadFile"},
        files={"fileToUpload": ("<b>copy</b>.png", b"same bytes", "image/png")},
    )
    assert response.status_code == 200
    assert (
        '<a href="/image?ID=' in response.text
        and "&lt;b&gt;copy&lt;/b&gt;.png</a> has already been uploaded." in response.text
    )


def test_upload_warnings(client, admin):
    response = client.post(
        "/image",
        data={"command": "uploadFile"},
        files={"fileToUpload": ("notes.txt", b"text", "text/plain")},
    )
    assert "One or more warnings generated during upload." in response.text
    assert "notes.txt is not a recognized file." in response.text


def test_upload_requires_logon(client):
    response = client.post(
        "/image",
        data={"command": "uploadFile"},
        files={"fileToUpload": ("a.png", b"data", "image/png")},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert "You+must+be+logged+in+to+upload+images" in response.headers["location"]


def test_upload_form(client, admin):
    response = client.get("/uploadform")
    assert 'name="fileToUpload"' in response.text
