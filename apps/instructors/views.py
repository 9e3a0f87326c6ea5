"""
Instructor listing and the public schedule students book from.
"""
from datetime import timedelta

from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET

from apps.bookings.models import ClassType, Slot, SlotStatus
from apps.core.http import (
    BadRequest,
    NotFound,
    error_response,
    get_or_not_found,
    parse_date,
    parse_uuid,
)

from .models import Instructor

DEFAULT_SCHEDULE_DAYS = 14


@require_GET
def instructor_list(request):
    """GET /api/instructors/?location_id=&class_type="""
    instructors = Instructor.objects.filter(is_active=True).prefetch_related('locations')

    location_id = request.GET.get('location_id')
    if location_id:
        try:
            instructors = instructors.filter(locations__id=parse_uuid(location_id, 'location_id'))
        except BadRequest as exc:
            return error_response(exc)

    class_type = request.GET.get('class_type')
    if class_type == ClassType.DRIVING_TEST:
        instructors = instructors.filter(teaches_driving_test=True)
    elif class_type == ClassType.DRIVING_LESSON:
        instructors = instructors.filter(teaches_driving_lesson=True)
    elif class_type:
        return JsonResponse({'error': 'Invalid class_type.'}, status=400)

    return JsonResponse({'instructors': [i.as_dict() for i in instructors.distinct()]})


@require_GET
def instructor_schedule(request, instructor_id):
    """
    GET /api/instructors/<uuid>/schedule/?class_type=&start=YYYY-MM-DD&end=YYYY-MM-DD

    Live slots only; cancelled history rows and student details stay hidden.
    """
    try:
        instructor = get_or_not_found(
            Instructor.objects.filter(is_active=True), instructor_id, 'Instructor not found.',
        )
        class_type = request.GET.get('class_type', ClassType.DRIVING_TEST)
        if class_type not in ClassType.values:
            raise BadRequest('Invalid class_type.')
        if not instructor.teaches(class_type):
            raise NotFound(f'{instructor.name} does not teach {class_type.replace("_", " ")}s.')

        start = parse_date(request.GET['start'], 'start') if request.GET.get('start') else timezone.localdate()
        end = (
            parse_date(request.GET['end'], 'end') if request.GET.get('end')
            else start + timedelta(days=DEFAULT_SCHEDULE_DAYS)
        )
        if end < start:
            raise BadRequest('end must not be before start.')
    except (BadRequest, NotFound) as exc:
        return error_response(exc)

    slots = (
        Slot.objects
        .filter(instructor=instructor, class_type=class_type, date__range=(start, end))
        .exclude(status=SlotStatus.CANCELLED)
    )
    return JsonResponse({
        'instructor': instructor.as_dict(),
        'class_type': class_type,
        'start': start.isoformat(),
        'end': end.isoformat(),
        'slots': [slot.as_public_dict() for slot in slots],
    })
