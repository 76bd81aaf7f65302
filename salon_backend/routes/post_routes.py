from datetime import date

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import ValidationError, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_backend.auth.permissions import can_manage, require_employee
from salon_backend.core.errors import Forbidden, NotFound, StoreUnavailable, ValidationFailed, first_error_message
from salon_backend.core.schemas import CamelModel
from salon_backend.database import get_db
from salon_backend.models.post import Post
from salon_backend.models.user import User
from salon_backend.services.media_storage import delete_media, save_media

router = APIRouter(tags=['posts'])

MEDIA_TYPES = {'image', 'video'}
MAX_PAGE_SIZE = 100


class PostResponse(CamelModel):
    id: int
    title: str
    content: str
    author: str
    date: date
    media_url: str | None = None
    media_type: str | None = None
    user_id: int | None = None


class PostPageResponse(CamelModel):
    posts: list[PostResponse]
    total: int
    has_more: bool


class PostRequest(CamelModel):
    title: str
    content: str
    media_url: str | None = None
    media_type: str | None = None

    @field_validator('title', 'content')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Field is required.')
        return normalized

    @field_validator('media_type')
    @classmethod
    def validate_media_type(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in MEDIA_TYPES:
            raise ValueError('Media type must be image or video.')
        return normalized


def get_editable_post(db: Session, post_id: int, current_user: User) -> Post:
    post = db.get(Post, post_id)
    if post is None:
        raise NotFound('Post not found')
    if not can_manage(current_user, post.user_id):
        raise Forbidden('You can only modify your own posts')
    return post


@router.get('', response_model=PostPageResponse)
def list_posts(
    limit: int | None = Query(default=None, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    try:
        total = db.query(Post).count()
        query = db.query(Post).order_by(Post.date.desc(), Post.id.desc()).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        posts = query.all()
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc

    return PostPageResponse(
        posts=[PostResponse.model_validate(post) for post in posts],
        total=total,
        has_more=offset + len(posts) < total,
    )


@router.post('', response_model=PostResponse, status_code=status.HTTP_201_CREATED)
def create_post(
    title: str = Form(...),
    content: str = Form(...),
    media_url: str | None = Form(default=None, alias='mediaUrl'),
    media_type: str | None = Form(default=None, alias='mediaType'),
    media: UploadFile | None = File(default=None),
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    try:
        data = PostRequest(title=title, content=content, media_url=media_url, media_type=media_type)
    except ValidationError as exc:
        raise ValidationFailed(first_error_message(exc.errors())) from exc

    stored = save_media(media) if media is not None and media.filename else None
    if stored is not None:
        data.media_url, data.media_type = stored.url, stored.media_type

    try:
        post = Post(
            title=data.title,
            content=data.content,
            author=current_user.name,
            media_url=data.media_url,
            media_type=data.media_type if data.media_url else None,
            user_id=current_user.id,
        )
        db.add(post)
        db.commit()
        db.refresh(post)
        return post
    except SQLAlchemyError as exc:
        db.rollback()
        if stored is not None:
            delete_media(stored.url)
        raise StoreUnavailable() from exc


@router.put('/{post_id}', response_model=PostResponse)
def update_post(
    post_id: int,
    data: PostRequest,
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    try:
        post = get_editable_post(db, post_id, current_user)
        replaced_media = post.media_url if post.media_url != data.media_url else None
        post.title = data.title
        post.content = data.content
        post.media_url = data.media_url
        post.media_type = data.media_type if data.media_url else None
        db.commit()
        db.refresh(post)
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc

    delete_media(replaced_media)
    return post


@router.delete('/{post_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    post_id: int,
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    try:
        post = get_editable_post(db, post_id, current_user)
        media_url = post.media_url
        db.delete(post)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc

    delete_media(media_url)
