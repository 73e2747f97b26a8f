from app import create_app, db
from app.models import (Competency, CompetencyLevel, ProjectAssignmentRequest, TrainingBatch,
                        TrainingRequest, TrainingRequestStatus, User,
                        ValidationProjectApproval, ValidationScheduleRequest)

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {'db': db, 'User': User, 'Competency': Competency,
            'CompetencyLevel': CompetencyLevel, 'TrainingRequest': TrainingRequest,
            'TrainingRequestStatus': TrainingRequestStatus,
            'ValidationProjectApproval': ValidationProjectApproval,
            'ValidationScheduleRequest': ValidationScheduleRequest,
            'ProjectAssignmentRequest': ProjectAssignmentRequest,
            'TrainingBatch': TrainingBatch}


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5000)
