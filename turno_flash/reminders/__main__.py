from turno_flash.reminders.main import main

main()
