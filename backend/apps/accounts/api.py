"""
Accounts API endpoints.

- Email passcode sign-in and admin step-up verification
- Current user and own profile
- User administration and dashboard counts (staff only)
- Profile review queue and networking directory
"""

from dataclasses import asdict

from django.http import HttpRequest
from ninja import Router

from apps.accounts import auth_provider, services
from apps.accounts.models import User, UserProfile
from apps.accounts.schemas import (
    AdminOtpVerifyRequest,
    AdminStatsResponse,
    CreateUserRequest,
    DirectoryEntry,
    DirectoryResponse,
    MessageResponse,
    OtpSendRequest,
    OtpVerifyRequest,
    ProfileCreateRequest,
    ProfileListResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    SessionResponse,
    UpdateRoleRequest,
    UpdateStatusRequest,
    UserInfo,
    UserListResponse,
)
from apps.core.exceptions import NotFoundError
from apps.core.schemas import ErrorResponse
from apps.core.security import BearerAuth, get_principal

router = Router(tags=["accounts"])
bearer_auth = BearerAuth()


def _user_info(user: User) -> UserInfo:
    return UserInfo(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        status=user.status,
    )


def _profile_response(profile: UserProfile) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        user_id=profile.user_id,
        first_name=profile.first_name,
        last_name=profile.last_name,
        village_name=profile.village_name,
        current_location=profile.current_location,
        bio=profile.bio,
        field_visibility=profile.field_visibility or {},
        status=profile.status,
        approved_by_id=profile.approved_by_id,
        approved_at=profile.approved_at,
        created_at=profile.created_at,
        updated_at=profile.updated_at,
    )


# --- Sign-in ---


@router.post(
    "/otp/send",
    response={200: MessageResponse, 400: ErrorResponse},
    operation_id="sendOtp",
    summary="Send email passcode",
)
def send_otp(request: HttpRequest, payload: OtpSendRequest) -> MessageResponse:
    auth_provider.send_otp(payload.email)
    return MessageResponse(message="Code sent. Check your email.")


@router.post(
    "/otp/verify",
    response={200: SessionResponse, 401: ErrorResponse},
    operation_id="verifyOtp",
    summary="Verify email passcode",
)
def verify_otp(request: HttpRequest, payload: OtpVerifyRequest) -> SessionResponse:
    """
    Verify a passcode and return a session JWT.

    Creates the local user on first sign-in.
    """
    return SessionResponse(session_jwt=auth_provider.verify_otp(payload.email, payload.code))


@router.post(
    "/admin/verify",
    response={200: SessionResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=bearer_auth,
    operation_id="verifyAdminOtp",
    summary="Step-up verification for the admin surface",
)
def verify_admin_otp(request: HttpRequest, payload: AdminOtpVerifyRequest) -> SessionResponse:
    principal = get_principal(request)
    return SessionResponse(session_jwt=auth_provider.verify_admin_otp(principal, payload.code))


# --- Current user ---


@router.get(
    "/me",
    response={200: UserInfo, 401: ErrorResponse},
    auth=bearer_auth,
    operation_id="getCurrentUser",
    summary="Get current user info",
)
def get_current_user(request: HttpRequest) -> UserInfo:
    principal = get_principal(request)
    return _user_info(User.objects.get(pk=principal.user_id))


@router.get(
    "/me/profile",
    response={200: ProfileResponse, 401: ErrorResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="getOwnProfile",
    summary="Get own profile",
)
def get_own_profile(request: HttpRequest) -> ProfileResponse:
    principal = get_principal(request)
    profile = UserProfile.objects.filter(user_id=principal.user_id).first()
    if profile is None:
        raise NotFoundError("Profile not found")
    return _profile_response(profile)


@router.post(
    "/me/profile",
    response={201: ProfileResponse, 400: ErrorResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=bearer_auth,
    operation_id="createProfile",
    summary="Submit own profile for approval",
)
def create_profile(request: HttpRequest, payload: ProfileCreateRequest) -> tuple[int, ProfileResponse]:
    principal = get_principal(request)
    profile = services.create_profile(principal, payload.model_dump())
    return 201, _profile_response(profile)


@router.patch(
    "/me/profile",
    response={200: ProfileResponse, 400: ErrorResponse, 401: ErrorResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="updateOwnProfile",
    summary="Update own profile",
)
def update_own_profile(request: HttpRequest, payload: ProfileUpdateRequest) -> ProfileResponse:
    """
    Update the caller's profile. Any edit sends it back to pending review.
    """
    principal = get_principal(request)
    profile = services.update_own_profile(principal, payload.model_dump(exclude_unset=True, exclude_none=True))
    return _profile_response(profile)


# --- Directory ---


@router.get(
    "/directory",
    response={200: DirectoryResponse, 401: ErrorResponse},
    auth=bearer_auth,
    operation_id="listDirectory",
    summary="Networking directory of approved profiles",
)
def list_directory(request: HttpRequest, search: str | None = None) -> DirectoryResponse:
    get_principal(request)
    entries = services.list_directory(search)
    return DirectoryResponse(entries=[DirectoryEntry(**entry) for entry in entries])


# --- Administration ---


@router.get(
    "/users",
    response={200: UserListResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=bearer_auth,
    operation_id="listUsers",
    summary="List users",
)
def list_users(request: HttpRequest) -> UserListResponse:
    users = services.list_users(get_principal(request))
    return UserListResponse(users=[_user_info(u) for u in users])


@router.get(
    "/stats",
    response={200: AdminStatsResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=bearer_auth,
    operation_id="getAdminStats",
    summary="Dashboard counts for staff",
)
def get_admin_stats(request: HttpRequest) -> AdminStatsResponse:
    stats = services.admin_stats(get_principal(request))
    return AdminStatsResponse(**asdict(stats))


@router.post(
    "/users",
    response={201: UserInfo, 400: ErrorResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=bearer_auth,
    operation_id="createUser",
    summary="Create a user",
)
def create_user(request: HttpRequest, payload: CreateUserRequest) -> tuple[int, UserInfo]:
    user = services.create_user(
        get_principal(request),
        email=payload.email,
        name=payload.name,
        role=payload.role,
        phone_number=payload.phone_number,
    )
    return 201, _user_info(user)


@router.patch(
    "/users/{user_id}/role",
    response={200: UserInfo, 401: ErrorResponse, 403: ErrorResponse, 404: ErrorResponse},
    auth=bearer_auth,
    operation_id="updateUserRole",
    summary="Change a user's role",
)
def update_user_role(request: HttpRequest, user_id: int, payload: UpdateRoleRequest) -> UserInfo:
    user = services.update_user_role(get_principal(request), user_id, payload.role)
    return _user_info(user)


@router.patch(
    "/users/{user_id}/status",
    response={
        200: UserInfo,
        400: ErrorResponse,
        401: ErrorResponse,
        403: ErrorResponse,
        404: ErrorResponse,
        409: ErrorResponse,
    },
    auth=bearer_auth,
    operation_id="updateUserStatus",
    summary="Change a user's account status",
)
def update_user_status(request: HttpRequest, user_id: int, payload: UpdateStatusRequest) -> UserInfo:
    user = services.update_user_status(get_principal(request), user_id, payload.status)
    return _user_info(user)


@router.get(
    "/profiles/pending",
    response={200: ProfileListResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=bearer_auth,
    operation_id="listPendingProfiles",
    summary="Profiles awaiting review",
)
def list_pending_profiles(request: HttpRequest) -> ProfileListResponse:
    profiles = services.list_pending_profiles(get_principal(request))
    return ProfileListResponse(profiles=[_profile_response(p) for p in profiles])


@router.post(
    "/profiles/{profile_id}/approve",
    response={200: ProfileResponse, 401: ErrorResponse, 403: ErrorResponse, 404: ErrorResponse, 409: ErrorResponse},
    auth=bearer_auth,
    operation_id="approveProfile",
    summary="Approve a profile",
)
def approve_profile(request: HttpRequest, profile_id: int) -> ProfileResponse:
    return _profile_response(services.approve_profile(get_principal(request), profile_id))


@router.post(
    "/profiles/{profile_id}/reject",
    response={200: ProfileResponse, 401: ErrorResponse, 403: ErrorResponse, 404: ErrorResponse, 409: ErrorResponse},
    auth=bearer_auth,
    operation_id="rejectProfile",
    summary="Reject a profile",
)
def reject_profile(request: HttpRequest, profile_id: int) -> ProfileResponse:
    return _profile_response(services.reject_profile(get_principal(request), profile_id))
