from rest_framework import serializers

from .models import Person, Task, TaskDependency

class PersonSerializer(serializers.ModelSerializer):
    class Meta:
        model = Person
        fields = ['id', 'name', 'email']

class TaskSerializer(serializers.ModelSerializer):
    class Meta:
        model = Task
        fields = [
            'id', 'name', 'status', 'project', 'assignees',
            'completion_percentage', 'category', 'tags',
        ]

class TaskSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Task
        fields = ['id', 'name', 'status', 'completion_percentage']

class DependencySerializer(serializers.ModelSerializer):
    depends_on_task = TaskSummarySerializer(source='depends_on', read_only=True)

    class Meta:
        model = TaskDependency
        fields = ['id', 'task', 'depends_on', 'depends_on_task', 'created_at']

class DependentSerializer(serializers.ModelSerializer):
    dependent_task = TaskSummarySerializer(source='task', read_only=True)

    class Meta:
        model = TaskDependency
        fields = ['id', 'task', 'depends_on', 'dependent_task', 'created_at']

class DependencyInputSerializer(serializers.Serializer):
    depends_on_task_id = serializers.IntegerField(min_value=1)

class StatusChangeSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Task.STATUS_CHOICES)

class MoveInputSerializer(serializers.Serializer):
    # Left optional so a malformed drag reaches the validator and comes back as `invalid_data`
    task_id = serializers.IntegerField(required=False, allow_null=True)
    source_person_id = serializers.IntegerField(required=False, allow_null=True)
    target_person_id = serializers.IntegerField(required=False, allow_null=True)

class BlockingStatusSerializer(serializers.Serializer):
    blocked = serializers.BooleanField()
    blocking_tasks = TaskSummarySerializer(many=True)
    total_dependencies = serializers.IntegerField()

class WorkloadSerializer(serializers.Serializer):
    total_tasks = serializers.IntegerField()
    active_tasks = serializers.IntegerField()
    in_progress_tasks = serializers.IntegerField()
    not_started_tasks = serializers.IntegerField()
    paused_tasks = serializers.IntegerField()
    average_completion = serializers.IntegerField()
    level = serializers.CharField()
    can_receive_more = serializers.BooleanField()

class AssignmentSuggestionSerializer(serializers.Serializer):
    person = serializers.DictField()
    score = serializers.IntegerField()
    current_active_task_count = serializers.IntegerField()
    can_receive = serializers.BooleanField()
    reason = serializers.CharField()
    workload_level = serializers.CharField()
    similar_tasks_count = serializers.IntegerField()

class MoveResultSerializer(serializers.Serializer):
    is_valid = serializers.BooleanField()
    reason = serializers.CharField(allow_null=True)
    message = serializers.CharField()
    details = serializers.DictField()
