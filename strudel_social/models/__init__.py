"""
Pydantic models for strudel-social.

All data shapes defined here. No imports from db, repos, or services.
"""

from strudel_social.models.pattern import (
    Pattern,
    PatternComment,
    PatternCommentInsert,
    PatternDetail,
    PatternInsert,
    PatternLike,
    PatternLikeInsert,
    PatternView,
    UploadForm,
)
from strudel_social.models.post import Comment, CommentInsert, Post, PostInsert, PostView
from strudel_social.models.user import (
    ANONYMOUS,
    Anonymous,
    AuthSession,
    Authenticated,
    SessionUser,
    SignUpRequest,
)

__all__ = [
    # User models
    "ANONYMOUS",
    "Anonymous",
    "Authenticated",
    "AuthSession",
    "SessionUser",
    "SignUpRequest",
    # Pattern models
    "Pattern",
    "PatternInsert",
    "PatternLike",
    "PatternLikeInsert",
    "PatternComment",
    "PatternCommentInsert",
    "PatternView",
    "PatternDetail",
    "UploadForm",
    # Feed models
    "Post",
    "PostInsert",
    "Comment",
    "CommentInsert",
    "PostView",
]
