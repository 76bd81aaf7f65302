import io
from datetime import date, time

import pytest
from fastapi import HTTPException, UploadFile
from starlette.datastructures import Headers

from salon_backend.create_admin import create_or_promote_admin
from salon_backend.models.appointment import Appointment, AppointmentStatus
from salon_backend.models.availability import Availability
from salon_backend.models.post import Post
from salon_backend.models.service import Service
from salon_backend.models.user import User, UserRole
from salon_backend.routes.post_routes import PostRequest, create_post, delete_post, list_posts, update_post
from salon_backend.routes.service_routes import (
    CreateServiceRequest,
    UpdateServiceRequest,
    create_service,
    delete_service,
    list_services,
    update_service,
)
from salon_backend.routes.staff_routes import (
    CreateEmployeeRequest,
    UpdateRoleRequest,
    create_employee,
    delete_employee,
    list_employees,
    update_role,
)
from salon_backend.services import media_storage


def test_create_service_strips_markup(salon_db, make_user) -> None:
    request = CreateServiceRequest(name=' <b>Balayage</b> ', description='Hand-painted color', price='150', priceMax='220')

    service = create_service(data=request, current_user=make_user('Avery'), db=salon_db)

    assert service.name == 'bBalayage/b'
    assert service.price_max == '220'
    assert [row.id for row in list_services(db=salon_db)] == [service.id]


def test_update_service_keeps_unspecified_fields(salon_db, make_user, make_service) -> None:
    service = make_service('Trim', price='30')

    updated = update_service(
        service_id=service.id,
        data=UpdateServiceRequest(price='35'),
        current_user=make_user('Avery'),
        db=salon_db,
    )

    assert (updated.name, updated.price) == ('Trim', '35')


@pytest.mark.parametrize('status', [AppointmentStatus.PENDING.value, AppointmentStatus.ACCEPTED.value])
def test_delete_service_refuses_with_active_appointments(
    salon_db, make_user, make_service, make_appointment, status: str,
) -> None:
    service = make_service()
    make_appointment(time(10, 0), status=status, service=service)

    with pytest.raises(HTTPException) as exception_info:
        delete_service(service_id=service.id, current_user=make_user('Avery'), db=salon_db)

    assert exception_info.value.status_code == 409
    assert salon_db.get(Service, service.id) is not None


def test_delete_service_removes_finished_appointments(salon_db, make_user, make_service, make_appointment) -> None:
    service = make_service()
    make_appointment(time(10, 0), status=AppointmentStatus.DECLINED.value, service=service)
    make_appointment(time(11, 0), status=AppointmentStatus.CANCELLED.value, service=service)

    delete_service(service_id=service.id, current_user=make_user('Avery'), db=salon_db)

    assert salon_db.query(Service).count() == 0
    assert salon_db.query(Appointment).count() == 0


def upload(filename: str, content_type: str, payload: bytes = b'media-bytes') -> UploadFile:
    return UploadFile(file=io.BytesIO(payload), filename=filename, headers=Headers({'content-type': content_type}))


def new_post(db, user, title: str = 'Holiday hours', media: UploadFile | None = None, **form) -> Post:
    return create_post(
        title=title,
        content=form.get('content', 'Closed Monday'),
        media_url=form.get('media_url'),
        media_type=form.get('media_type'),
        media=media,
        current_user=user,
        db=db,
    )


@pytest.fixture
def media_root(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(media_storage.config, 'MEDIA_ROOT', str(tmp_path))
    return tmp_path


def test_post_lifecycle_respects_ownership(salon_db, make_user) -> None:
    avery = make_user('Avery')
    blake = make_user('Blake')
    admin = make_user('Morgan', role=UserRole.ADMIN.value)

    post = new_post(salon_db, avery, title=' Holiday hours ', media_url='https://cdn/x.jpg', media_type='Image')
    assert (post.title, post.author, post.media_type) == ('Holiday hours', 'Avery', 'image')

    with pytest.raises(HTTPException) as exception_info:
        update_post(post_id=post.id, data=PostRequest(title='Mine', content='now'), current_user=blake, db=salon_db)
    assert exception_info.value.status_code == 403

    updated = update_post(post_id=post.id, data=PostRequest(title='Hours', content='Open'), current_user=admin, db=salon_db)
    assert updated.media_url is None
    assert updated.media_type is None

    delete_post(post_id=post.id, current_user=avery, db=salon_db)
    assert salon_db.query(Post).count() == 0


def test_create_post_rejects_blank_title(salon_db, make_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        new_post(salon_db, make_user('Avery'), title='   ')

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'title: Field is required.'


def test_list_posts_newest_first(salon_db) -> None:
    salon_db.add_all([
        Post(title='Old', content='a', date=date(2030, 1, 1)),
        Post(title='New', content='b', date=date(2030, 6, 1)),
    ])
    salon_db.commit()

    page = list_posts(limit=None, offset=0, db=salon_db)

    assert [post.title for post in page.posts] == ['New', 'Old']
    assert page.total == 2
    assert page.has_more is False


@pytest.mark.parametrize(
    ('limit', 'offset', 'titles', 'has_more'),
    [
        (2, 0, ['May', 'April'], True),
        (2, 2, ['March', 'February'], True),
        (2, 4, ['January'], False),
        (10, 0, ['May', 'April', 'March', 'February', 'January'], False),
        (2, 6, [], False),
    ],
)
def test_list_posts_pages_with_limit_and_offset(
    salon_db, limit: int, offset: int, titles: list[str], has_more: bool,
) -> None:
    months = ['January', 'February', 'March', 'April', 'May']
    salon_db.add_all([
        Post(title=month, content='news', date=date(2030, index + 1, 1)) for index, month in enumerate(months)
    ])
    salon_db.commit()

    page = list_posts(limit=limit, offset=offset, db=salon_db)

    assert [post.title for post in page.posts] == titles
    assert page.total == 5
    assert page.has_more is has_more
    assert set(page.model_dump(by_alias=True)) == {'posts', 'total', 'hasMore'}


@pytest.mark.parametrize(
    ('filename', 'content_type', 'media_type'),
    [
        ('cut.JPG', 'image/jpeg', 'image'),
        ('tour.mp4', 'video/mp4', 'video'),
    ],
)
def test_create_post_stores_uploaded_media(
    salon_db, make_user, media_root, filename: str, content_type: str, media_type: str,
) -> None:
    avery = make_user('Avery')

    post = new_post(salon_db, avery, media=upload(filename, content_type), media_url='https://ignored')

    assert post.media_type == media_type
    assert post.media_url.startswith('/uploads/')
    stored = media_root / post.media_url.rsplit('/', 1)[1]
    assert stored.read_bytes() == b'media-bytes'

    delete_post(post_id=post.id, current_user=avery, db=salon_db)
    assert not stored.exists()


@pytest.mark.parametrize(
    ('filename', 'content_type'),
    [
        ('notes.txt', 'text/plain'),
        ('cut.jpg', 'application/octet-stream'),
        ('script.exe', 'image/png'),
    ],
)
def test_create_post_rejects_unsupported_media(
    salon_db, make_user, media_root, filename: str, content_type: str,
) -> None:
    with pytest.raises(HTTPException) as exception_info:
        new_post(salon_db, make_user('Avery'), media=upload(filename, content_type))

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail.startswith('Only images')
    assert salon_db.query(Post).count() == 0
    assert list(media_root.iterdir()) == []


def test_create_post_rejects_oversized_media(salon_db, make_user, media_root, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(media_storage.config, 'MEDIA_MAX_BYTES', 4)

    with pytest.raises(HTTPException) as exception_info:
        new_post(salon_db, make_user('Avery'), media=upload('cut.png', 'image/png', b'0123456789'))

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail.startswith('File is too large.')
    assert salon_db.query(Post).count() == 0
    assert list(media_root.iterdir()) == []


def test_delete_media_ignores_external_and_traversal_urls(media_root) -> None:
    assert not media_storage.delete_media('https://cdn.example.com/cut.jpg')
    assert not media_storage.delete_media('/uploads/../salon.db')
    assert not media_storage.delete_media('/uploads/missing.jpg')


def test_post_request_rejects_unknown_media_type() -> None:
    with pytest.raises(ValueError):
        PostRequest(title='A', content='B', media_type='audio')


def test_staff_management(salon_db, make_user, make_availability) -> None:
    admin = make_user('Morgan', role=UserRole.ADMIN.value)
    make_user('Casey', role=UserRole.CUSTOMER.value)

    employee = create_employee(
        data=CreateEmployeeRequest(name='Avery', email='AVERY@salon.test', password='secret1'),
        current_user=admin,
        db=salon_db,
    )
    assert employee.role == UserRole.EMPLOYEE.value
    assert [user.name for user in list_employees(db=salon_db)] == ['Avery', 'Morgan']

    with pytest.raises(HTTPException) as exception_info:
        create_employee(
            data=CreateEmployeeRequest(name='Avery', email='avery@salon.test', password='secret1'),
            current_user=admin,
            db=salon_db,
        )
    assert exception_info.value.status_code == 409

    promoted = update_role(user_id=employee.id, data=UpdateRoleRequest(role='admin'), current_user=admin, db=salon_db)
    assert promoted.role == UserRole.ADMIN.value

    make_availability(employee, time(9, 0), time(12, 0))
    delete_employee(user_id=employee.id, current_user=admin, db=salon_db)
    assert salon_db.get(User, employee.id) is None
    assert salon_db.query(Availability).count() == 0


def test_staff_management_protects_current_admin(salon_db, make_user) -> None:
    admin = make_user('Morgan', role=UserRole.ADMIN.value)

    with pytest.raises(HTTPException) as exception_info:
        update_role(user_id=admin.id, data=UpdateRoleRequest(role='employee'), current_user=admin, db=salon_db)
    assert exception_info.value.status_code == 400

    with pytest.raises(HTTPException) as exception_info:
        delete_employee(user_id=admin.id, current_user=admin, db=salon_db)
    assert exception_info.value.status_code == 400


def test_create_employee_rejects_customer_role() -> None:
    with pytest.raises(ValueError):
        CreateEmployeeRequest(name='Avery', email='avery@salon.test', password='secret1', role='customer')


def test_create_or_promote_admin(salon_db, make_user) -> None:
    existing = make_user('Avery')

    promoted = create_or_promote_admin(salon_db, 'AVERY@salon.test', 'Avery')
    created = create_or_promote_admin(salon_db, 'owner@salon.test', 'Owner', password='secret1')

    assert promoted.id == existing.id
    assert promoted.role == UserRole.ADMIN.value
    assert created.role == UserRole.ADMIN.value

    with pytest.raises(ValueError):
        create_or_promote_admin(salon_db, 'new@salon.test', 'New')
