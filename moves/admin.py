from django.contrib import admin
from .models import Move, StudyHistory, LearnerProfile


class StudyHistoryInline(admin.TabularInline):
    model = StudyHistory
    extra = 0
    fields = ['incorrect_guess_san', 'studied_at']
    readonly_fields = ['incorrect_guess_san', 'studied_at']
    can_delete = False


@admin.register(Move)
class MoveAdmin(admin.ModelAdmin):
    list_display = ['move_san', 'owner', 'is_own_move', 'phase', 'learning_step',
                    'review_interval', 'review_ease', 'next_due']
    list_filter = ['owner', 'is_own_move']
    search_fields = ['move_san', 'owner__username']
    readonly_fields = ['learning_due_time', 'learning_step', 'review_due_date',
                       'review_interval', 'review_ease']
    inlines = [StudyHistoryInline]

    def next_due(self, obj):
        return obj.learning_due_time or obj.review_due_date
    next_due.short_description = 'Next due'


@admin.register(StudyHistory)
class StudyHistoryAdmin(admin.ModelAdmin):
    list_display = ['move', 'owner', 'correct', 'incorrect_guess_san', 'studied_at']
    list_filter = ['studied_at']
    readonly_fields = ['owner', 'move', 'incorrect_guess_san', 'studied_at']


@admin.register(LearnerProfile)
class LearnerProfileAdmin(admin.ModelAdmin):
    list_display = ['lichess_username', 'user', 'last_repertoire_update_check', 'updated_at']
    search_fields = ['lichess_username']
    exclude = ['lichess_access_token']
